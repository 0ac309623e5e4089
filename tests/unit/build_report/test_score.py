"""Tests for build_report.score module."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from build_report.score import aggregate_score, score_group
from common.config import ScoringConfig

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
CONFIG = ScoringConfig(size_weight=1.0, half_life_hours=6.0)


class TestScoreGroup:
    def test_larger_group_scores_higher(self) -> None:
        assert score_group(5, NOW, NOW, CONFIG) > score_group(3, NOW, NOW, CONFIG)

    def test_recent_group_scores_higher(self) -> None:
        day_old = NOW - timedelta(hours=24)
        assert score_group(3, NOW, NOW, CONFIG) > score_group(3, day_old, NOW, CONFIG)

    def test_half_life(self) -> None:
        fresh = score_group(4, NOW, NOW, CONFIG)
        older = score_group(4, NOW - timedelta(hours=6), NOW, CONFIG)
        assert older == pytest.approx(fresh / 2)

    def test_fresh_score_is_weighted_log(self) -> None:
        config = ScoringConfig(size_weight=2.0, half_life_hours=6.0)
        assert score_group(3, NOW, NOW, config) == pytest.approx(2.0 * math.log1p(3))

    def test_future_timestamp_counts_as_now(self) -> None:
        future = NOW + timedelta(hours=2)
        assert score_group(3, future, NOW, CONFIG) == score_group(3, NOW, NOW, CONFIG)

    def test_rejects_empty_group(self) -> None:
        with pytest.raises(ValueError):
            score_group(0, NOW, NOW, CONFIG)


class TestAggregateScore:
    def test_empty_is_zero(self) -> None:
        assert aggregate_score([], "top") == 0.0
        assert aggregate_score([], "mean") == 0.0

    def test_policies(self) -> None:
        scores = [3.0, 1.0, 2.0]
        assert aggregate_score(scores, "top") == 3.0
        assert aggregate_score(scores, "sum") == 6.0
        assert aggregate_score(scores, "mean") == 2.0

    def test_unknown_policy_raises(self) -> None:
        with pytest.raises(ValueError):
            aggregate_score([1.0], "median")
