"""Data models for cluster_entries pipeline stage."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class ClusterPoint:
    """An entry with its resolved embedding, ready for clustering."""

    entry_id: int
    link: str
    title: str
    published_at: datetime
    hash: str
    embedding_id: int
    vector: list[float]


@dataclass
class Cluster:
    cluster_id: int
    members: list[ClusterPoint]


@dataclass
class ClusteringResult:
    eps: float
    min_points: int
    clusters: list[Cluster] = field(default_factory=list)
    noise: list[ClusterPoint] = field(default_factory=list)
    silhouette: float | None = None

    @property
    def rows(self) -> int:
        return sum(len(c.members) for c in self.clusters) + len(self.noise)
