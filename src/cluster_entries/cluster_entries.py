"""Cluster entries in the lookback window using DBSCAN."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from sklearn.cluster import DBSCAN
from sklearn.metrics import silhouette_score

from cluster_entries.models import Cluster, ClusteringResult, ClusterPoint

logger = logging.getLogger(__name__)

NOISE_LABEL = -1


def _prepare_vectors(points: list[ClusterPoint]) -> np.ndarray:
    dimensions = {len(point.vector) for point in points}
    if len(dimensions) > 1:
        raise ValueError(f"Vectors have mismatched dimensions: {sorted(dimensions)}")
    if 0 in dimensions:
        raise ValueError("Vectors must not be empty")
    return np.asarray([point.vector for point in points], dtype="float64")


def _fit_labels(
    vectors: np.ndarray,
    eps: float,
    min_points: int,
    n_jobs: int | None = None,
) -> np.ndarray:
    # DBSCAN counts the point itself in min_samples; min_points counts only the others.
    clusterer = DBSCAN(
        eps=eps,
        min_samples=min_points + 1,
        metric="euclidean",
        n_jobs=n_jobs,
    )
    return clusterer.fit_predict(vectors)


def _silhouette(vectors: np.ndarray, labels: np.ndarray) -> float:
    """Silhouette score over clustered points, -1.0 when it is undefined."""
    mask = labels != NOISE_LABEL
    clustered = labels[mask]
    n_labels = len(set(clustered.tolist()))
    if n_labels < 2 or n_labels >= len(clustered):
        return -1.0
    return float(silhouette_score(vectors[mask], clustered, metric="euclidean"))


def _build_result(
    points: list[ClusterPoint],
    labels: np.ndarray,
    eps: float,
    min_points: int,
    silhouette: float | None,
) -> ClusteringResult:
    grouped: dict[int, list[ClusterPoint]] = {}
    noise = []
    for label, point in zip(labels.tolist(), points, strict=True):
        if label == NOISE_LABEL:
            noise.append(point)
            continue
        grouped.setdefault(int(label), []).append(point)

    clusters = [Cluster(cluster_id=label, members=grouped[label]) for label in sorted(grouped)]
    return ClusteringResult(
        eps=eps,
        min_points=min_points,
        clusters=clusters,
        noise=noise,
        silhouette=silhouette,
    )


def cluster_points(
    points: list[ClusterPoint],
    eps: float,
    min_points: int,
    n_jobs: int | None = None,
) -> ClusteringResult:
    """
    Partition points into dense clusters plus noise.

    Points are processed in ascending entry id. A border point reachable from
    more than one cluster joins the first cluster that reaches it in that
    order, and cluster ids follow discovery order, so the result depends only
    on the input set and never on ``n_jobs``.

    Args:
        points: Entries with resolved vectors of one common dimension.
        eps: Neighborhood radius (Euclidean).
        min_points: Number of other points within ``eps`` that makes a core point.
        n_jobs: Parallelism for the neighbor search.

    Returns:
        ClusteringResult with clusters ordered by cluster id.
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    if min_points < 0:
        raise ValueError("min_points must not be negative")

    ordered = sorted(points, key=lambda point: point.entry_id)
    if not ordered or len(ordered) < min_points:
        logger.info(
            "Not enough points to cluster (%d < min_points=%d)", len(ordered), min_points
        )
        return ClusteringResult(eps=eps, min_points=min_points, noise=ordered)

    vectors = _prepare_vectors(ordered)
    logger.info(
        "Clustering %d points (dim=%d, eps=%.4f, min_points=%d)",
        len(ordered),
        vectors.shape[1],
        eps,
        min_points,
    )
    labels = _fit_labels(vectors, eps, min_points, n_jobs)
    result = _build_result(ordered, labels, eps, min_points, _silhouette(vectors, labels))

    logger.info("Built %d clusters (%d noise)", len(result.clusters), len(result.noise))
    return result


def tune_eps(
    points: list[ClusterPoint],
    min_points: int,
    eps_min: float,
    eps_max: float,
    max_steps: int = 8,
    n_jobs: int | None = None,
) -> ClusteringResult:
    """
    Search ``[eps_min, eps_max]`` for the eps with the best silhouette score.

    Both ends are evaluated, then the range is halved towards the better end
    until the best score stops improving, the ends score equally, or
    ``max_steps`` midpoints have been tried. The search is deterministic.
    """
    if not 0 < eps_min <= eps_max:
        raise ValueError("eps range must satisfy 0 < eps_min <= eps_max")

    ordered = sorted(points, key=lambda point: point.entry_id)
    if not ordered or len(ordered) < min_points:
        return cluster_points(ordered, eps_min, min_points, n_jobs)

    vectors = _prepare_vectors(ordered)

    def evaluate(eps: float) -> tuple[float, float, np.ndarray]:
        labels = _fit_labels(vectors, eps, min_points, n_jobs)
        score = _silhouette(vectors, labels)
        logger.debug("eps=%.4f silhouette=%.4f", eps, score)
        return eps, score, labels

    left = evaluate(eps_min)
    right = evaluate(eps_max)
    best = max(left, right, key=lambda candidate: candidate[1])

    for _ in range(max_steps):
        if left[1] == right[1]:
            break
        center = evaluate((left[0] + right[0]) / 2.0)
        if left[1] > right[1]:
            right = center
        else:
            left = center

        candidate = max(left, right, key=lambda candidate: candidate[1])
        if candidate[1] <= best[1]:
            break
        best = candidate

    eps, score, labels = best
    logger.info("Selected eps=%.4f (silhouette=%.4f)", eps, score)
    result = _build_result(ordered, labels, eps, min_points, score)
    logger.info("Built %d clusters (%d noise)", len(result.clusters), len(result.noise))
    return result


def get_cluster_stats(result: ClusteringResult) -> dict[str, Any]:
    """Summary statistics for logging and reports."""
    sizes = [len(cluster.members) for cluster in result.clusters]
    return {
        "clusters": len(result.clusters),
        "noise": len(result.noise),
        "rows": result.rows,
        "largest": max(sizes) if sizes else 0,
        "mean_size": float(np.mean(sizes)) if sizes else 0.0,
        "eps": result.eps,
        "min_points": result.min_points,
        "silhouette": result.silhouette,
    }
