"""Assemble scored groups into a report draft."""

from __future__ import annotations

import logging
from datetime import datetime

from build_report.models import GroupDraft, ReportDraft
from build_report.score import aggregate_score, score_group
from cluster_entries.models import ClusteringResult, ClusterPoint
from common.config import ScoringConfig

logger = logging.getLogger(__name__)


def _dimensions(result: ClusteringResult) -> int:
    for cluster in result.clusters:
        return len(cluster.members[0].vector)
    for point in result.noise:
        return len(point.vector)
    return 0


def build_report_draft(
    run_id: str,
    result: ClusteringResult,
    representatives: dict[int, ClusterPoint],
    translations: dict[str, str],
    now: datetime,
    config: ScoringConfig,
) -> ReportDraft:
    """
    Score every cluster and order the groups for publication.

    Args:
        run_id: Identifier of the run producing the report.
        result: Clustering output; noise points never become groups.
        representatives: Representative member per cluster id.
        translations: English headlines keyed by the representative's field hash.
        now: Reference time for recency decay.
        config: Scoring weights and aggregate policy.

    Returns:
        ReportDraft with groups sorted by score descending, then cluster id.
    """
    groups = []
    for cluster in result.clusters:
        representative = representatives[cluster.cluster_id]
        t_max = max(member.published_at for member in cluster.members)
        groups.append(
            GroupDraft(
                cluster_id=cluster.cluster_id,
                score=score_group(len(cluster.members), t_max, now, config),
                representative=representative,
                members=list(cluster.members),
                translation=translations.get(representative.hash),
            )
        )

    groups.sort(key=lambda group: (-group.score, group.cluster_id))
    score = aggregate_score([group.score for group in groups], config.aggregate)

    untranslated = sum(1 for group in groups if group.translation is None)
    if untranslated:
        logger.warning("%d of %d groups have no translation", untranslated, len(groups))

    return ReportDraft(
        run_id=run_id,
        score=score,
        eps=result.eps,
        min_points=result.min_points,
        rows=result.rows,
        dimensions=_dimensions(result),
        groups=groups,
    )
