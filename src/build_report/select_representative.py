"""Pick the headline that best represents a cluster."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from cluster_entries.models import ClusterPoint


def compute_centroid(members: Sequence[ClusterPoint]) -> np.ndarray:
    """Coordinate-wise mean of the member vectors."""
    return np.asarray([member.vector for member in members], dtype="float64").mean(axis=0)


def select_representative(
    members: Sequence[ClusterPoint],
    centroid: Sequence[float] | None = None,
) -> ClusterPoint:
    """
    Return the member closest to the cluster centroid.

    Distance is Euclidean, the same metric used for clustering. Exact ties are
    broken by earliest ``published_at``, then by the lexicographically
    smallest link, so every non-empty cluster has exactly one winner.

    Args:
        members: Cluster members with vectors.
        centroid: Reference point; defaults to the mean of ``members``.
    """
    if not members:
        raise ValueError("Cannot select a representative of an empty cluster")

    center = compute_centroid(members) if centroid is None else np.asarray(centroid, dtype="float64")
    vectors = np.asarray([member.vector for member in members], dtype="float64")
    distances = np.linalg.norm(vectors - center, axis=1)

    ranked = sorted(
        zip(distances.tolist(), members),
        key=lambda pair: (pair[0], pair[1].published_at, pair[1].link),
    )
    return ranked[0][1]
