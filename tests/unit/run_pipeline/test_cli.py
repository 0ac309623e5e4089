"""Tests for run_pipeline.cli module."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from common.errors import PersistenceError
from news_db.reports import GroupView, ReportView
from run_pipeline.cli import build_report_records, run, run_forever
from run_pipeline.pipeline import RunResult
from run_pipeline.run_context import RunState

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _report() -> ReportView:
    group = GroupView(
        position=0,
        headline="Fire in Gothenburg",
        original_headline="Brand i Göteborg",
        translated=True,
        link="https://svt.se/1",
        score=0.7,
        published_at=NOW,
        member_count=3,
    )
    return ReportView(report_id=7, created_at=NOW, score=0.7, groups=[group])


class TestBuildReportRecords:
    def test_one_record_per_group(self) -> None:
        records = build_report_records(_report())

        assert len(records) == 1
        assert records[0]["report_id"] == 7
        assert records[0]["headline"] == "Fire in Gothenburg"
        assert records[0]["published_at"] == NOW.isoformat()


class TestRun:
    def test_exports_after_successful_run(self) -> None:
        pipeline = MagicMock()
        pipeline.run_once.return_value = RunResult(run_id="abc", state=RunState.IDLE, report_id=1)

        with patch("run_pipeline.cli._export_latest") as export:
            run(pipeline, load_local=True)

        export.assert_called_once_with(pipeline)

    def test_failed_run_is_not_exported(self) -> None:
        pipeline = MagicMock()
        pipeline.run_once.return_value = RunResult(run_id="abc", state=RunState.FAILED)

        with patch("run_pipeline.cli._export_latest") as export:
            result = run(pipeline, load_local=True)

        assert not result.succeeded
        export.assert_not_called()


class TestRunForever:
    def test_keeps_interval_after_failed_iteration(self) -> None:
        pipeline = MagicMock()
        pipeline.run_once.side_effect = [
            RuntimeError("boom"),
            RunResult(run_id="b", state=RunState.IDLE, report_id=2),
            RunResult(run_id="c", state=RunState.IDLE, report_id=3),
        ]
        sleeps = []

        def sleep(seconds) -> None:
            sleeps.append(seconds)
            if len(sleeps) == 3:
                raise KeyboardInterrupt

        with patch("run_pipeline.cli.time.sleep", side_effect=sleep), patch(
            "run_pipeline.cli._export_latest",
            side_effect=[PersistenceError("db gone"), None],
        ) as export:
            with pytest.raises(KeyboardInterrupt):
                run_forever(pipeline, interval_minutes=0.01, load_local=True)

        assert pipeline.run_once.call_count == 3
        assert export.call_count == 2
        assert len(sleeps) == 3
