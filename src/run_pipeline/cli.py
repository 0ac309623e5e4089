"""CLI for running the aggregation pipeline once or on an interval."""

from __future__ import annotations

import argparse
import logging
import time

from dotenv import load_dotenv

from common.cli_helpers import positive_float, setup_logging, write_report_jsonl
from common.config import Config, load_config
from common.serialization import serialize_dataclass
from ingest_entries.sources import FEEDS
from news_db.connection import Database
from news_db.reports import ReportView, get_latest_report
from resolve_content.providers import (
    OpenAITranslationProvider,
    build_embedding_provider,
    build_openai_client,
)
from run_pipeline.pipeline import Pipeline, RunResult

logger = logging.getLogger(__name__)


def build_pipeline(config: Config, embedding_backend: str = "openai") -> Pipeline:
    database = Database(config.database.url)
    database.create_schema()
    database.seed_feeds(FEEDS)

    translator = OpenAITranslationProvider(
        build_openai_client(config.provider), config.provider.translation_model
    )
    embedder = build_embedding_provider(embedding_backend, config.provider)
    return Pipeline(database, config, embedder, translator)


def build_report_records(report: ReportView) -> list[dict[str, object]]:
    records = []
    for group in report.groups:
        record = serialize_dataclass(group)
        record["report_id"] = report.report_id
        records.append(record)
    return records


def _export_latest(pipeline: Pipeline) -> None:
    clustering = pipeline.config.clustering
    report = get_latest_report(
        pipeline.database,
        clustering.field_name,
        clustering.lang,
        pipeline.config.run.target_lang,
    )
    if report is None:
        logger.warning("No report to export")
        return
    path = write_report_jsonl(build_report_records(report), report.report_id, report.created_at)
    logger.info("Saved %d groups of report %d to %s", len(report.groups), report.report_id, path)


def run(pipeline: Pipeline, load_local: bool = False) -> RunResult | None:
    result = pipeline.run_once()
    if result is not None and result.succeeded and load_local:
        _export_latest(pipeline)
    return result


def run_forever(pipeline: Pipeline, interval_minutes: float, load_local: bool = False) -> None:
    interval = interval_minutes * 60
    logger.info("Running every %.1f minutes", interval_minutes)
    while True:
        started = time.monotonic()
        try:
            run(pipeline, load_local)
        except Exception:
            logger.exception("Run failed; next run in %.1f minutes", interval_minutes)
        time.sleep(max(0.0, interval - (time.monotonic() - started)))


def main() -> None:
    parser = argparse.ArgumentParser(description="Aggregate Swedish news into ranked reports")
    parser.add_argument("--config", default=None, help="Config name under configs/ (default: prod)")
    parser.add_argument(
        "--interval-minutes",
        type=positive_float,
        default=None,
        help="Run repeatedly with this interval (implies --loop)",
    )
    parser.add_argument(
        "--loop", action="store_true", help="Run repeatedly at the configured interval"
    )
    parser.add_argument(
        "--embedding-backend",
        choices=["openai", "local"],
        default="openai",
        help="Embedding provider (default: openai)",
    )
    parser.add_argument(
        "--load-local", action="store_true", help="Save the published report to a local file"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    load_dotenv()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config)
    pipeline = build_pipeline(config, args.embedding_backend)
    try:
        interval = args.interval_minutes
        if interval is None and args.loop:
            interval = config.run.interval_minutes
        if interval is None:
            result = run(pipeline, args.load_local)
            if result is None or not result.succeeded:
                raise SystemExit(1)
        else:
            run_forever(pipeline, interval, args.load_local)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        pipeline.database.dispose()


if __name__ == "__main__":
    main()
