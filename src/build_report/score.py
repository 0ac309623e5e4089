"""Size and recency scoring for report groups."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Sequence

from common.config import AGGREGATE_POLICIES, ScoringConfig


def score_group(n: int, t_max: datetime, now: datetime, config: ScoringConfig) -> float:
    """
    Score a group of ``n`` members whose newest entry was published at ``t_max``.

    ``size_weight * log1p(n)`` decays by half every ``half_life_hours`` of age.
    Entries published after ``now`` count as age zero.
    """
    if n < 1:
        raise ValueError("A group has at least one member")
    if config.half_life_hours <= 0:
        raise ValueError("half_life_hours must be positive")

    age_hours = max(0.0, (now - t_max).total_seconds() / 3600.0)
    return config.size_weight * math.log1p(n) * 0.5 ** (age_hours / config.half_life_hours)


def aggregate_score(scores: Sequence[float], policy: str = "top") -> float:
    """Combine group scores into the report score."""
    if policy not in AGGREGATE_POLICIES:
        raise ValueError(f"Unknown aggregate policy: {policy}")
    if not scores:
        return 0.0
    if policy == "top":
        return max(scores)
    if policy == "sum":
        return math.fsum(scores)
    return math.fsum(scores) / len(scores)
