"""Data models for build_report pipeline stage."""

from dataclasses import dataclass, field

from cluster_entries.models import ClusterPoint


@dataclass
class GroupDraft:
    """One scored cluster, ready to be written as a report group."""

    cluster_id: int
    score: float
    representative: ClusterPoint
    members: list[ClusterPoint]
    translation: str | None = None


@dataclass
class ReportDraft:
    run_id: str
    score: float
    eps: float
    min_points: int
    rows: int
    dimensions: int
    groups: list[GroupDraft] = field(default_factory=list)
