"""Atomic report publication and the latest-report read model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from build_report.models import GroupDraft, ReportDraft
from common.errors import PersistenceError
from news_db.connection import Database
from news_db.models import CachedTranslation, Entry, Field, Report, ReportGroup, ReportGroupMember

logger = logging.getLogger(__name__)


@dataclass
class GroupView:
    position: int
    headline: str
    original_headline: str
    translated: bool
    link: str
    score: float
    published_at: datetime
    member_count: int


@dataclass
class ReportView:
    report_id: int
    created_at: datetime
    score: float
    groups: list[GroupView] = field(default_factory=list)


def _insert_groups(session: Session, report_id: int, groups: list[GroupDraft]) -> list[int]:
    rows = []
    for position, group in enumerate(groups):
        row = ReportGroup(
            report_id=report_id,
            position=position,
            score=group.score,
            representative_entry_id=group.representative.entry_id,
            member_count=len(group.members),
        )
        session.add(row)
        rows.append(row)
    session.flush()
    return [row.id for row in rows]


def _insert_members(session: Session, group_ids: list[int], groups: list[GroupDraft]) -> None:
    for group_id, group in zip(group_ids, groups, strict=True):
        session.add_all(
            ReportGroupMember(
                report_group_id=group_id,
                entry_id=member.entry_id,
                embedding_id=member.embedding_id,
            )
            for member in group.members
        )
    session.flush()


def publish_report(database: Database, draft: ReportDraft) -> int:
    """Write a report with all of its groups and memberships in one transaction.

    Either everything becomes visible or nothing does; previously published
    reports are never touched.

    Raises:
        PersistenceError: If any write fails. The transaction is rolled back.
    """
    try:
        with database.session() as session:
            report = Report(
                run_id=draft.run_id,
                score=draft.score,
                eps=draft.eps,
                min_points=draft.min_points,
                rows=draft.rows,
                dimensions=draft.dimensions,
            )
            session.add(report)
            session.flush()

            group_ids = _insert_groups(session, report.id, draft.groups)
            _insert_members(session, group_ids, draft.groups)
            session.commit()
            report_id = report.id
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to publish report for run {draft.run_id}: {exc}") from exc

    logger.info(
        "Published report %d (%d groups, score=%.4f)", report_id, len(draft.groups), draft.score
    )
    return report_id


def get_latest_report(
    database: Database,
    field_name: str = "title",
    lang_code: str = "sv",
    target_lang: str = "en",
) -> ReportView | None:
    """Return the most recently published report, groups in stored order.

    Headlines are translated into ``target_lang`` where a translation is cached.
    """
    try:
        with database.session() as session:
            report = session.execute(
                select(Report).order_by(Report.id.desc()).limit(1)
            ).scalar_one_or_none()
            if report is None:
                return None

            rows = session.execute(
                select(ReportGroup, Entry, CachedTranslation.value)
                .join(Entry, Entry.id == ReportGroup.representative_entry_id)
                .outerjoin(
                    Field,
                    (Field.entry_id == Entry.id)
                    & (Field.name == field_name)
                    & (Field.lang_code == lang_code),
                )
                .outerjoin(
                    CachedTranslation,
                    (CachedTranslation.hash == Field.hash)
                    & (CachedTranslation.lang_code == target_lang),
                )
                .where(ReportGroup.report_id == report.id)
                .order_by(ReportGroup.position)
            ).all()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to read latest report: {exc}") from exc

    groups = [
        GroupView(
            position=group.position,
            headline=translation if translation is not None else entry.title,
            original_headline=entry.title,
            translated=translation is not None,
            link=entry.link,
            score=group.score,
            published_at=entry.published_at,
            member_count=group.member_count,
        )
        for group, entry, translation in rows
    ]
    return ReportView(
        report_id=report.id,
        created_at=report.created_at,
        score=report.score,
        groups=groups,
    )
