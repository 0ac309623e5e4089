"""Entry and field persistence, and the lookback-window query."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.errors import PersistenceError
from news_db.connection import Database
from news_db.models import CachedEmbedding, Entry, Feed, Field

logger = logging.getLogger(__name__)


@dataclass
class WindowEntry:
    """An entry in the lookback window with its field hash and, if known, its vector."""

    entry_id: int
    link: str
    title: str
    published_at: datetime
    hash: str
    embedding_id: int | None
    vector: list[float] | None


def insert_ignore(session: Session, model):
    """Dialect-specific INSERT that supports ON CONFLICT DO NOTHING."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


def list_enabled_feeds(database: Database) -> list[Feed]:
    stmt = select(Feed).where(Feed.disabled.is_(False)).order_by(Feed.id)
    try:
        with database.session() as session:
            return list(session.execute(stmt).scalars())
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to list feeds: {exc}") from exc


def mark_feed_fetched(database: Database, feed_id: int, fetched_at: datetime) -> None:
    with database.session() as session:
        session.execute(update(Feed).where(Feed.id == feed_id).values(fetched_at=fetched_at))
        session.commit()


def insert_entry(
    session: Session,
    feed_id: int,
    link: str,
    title: str,
    published_at: datetime,
) -> int | None:
    """Insert an entry. Returns the new id, or None if the link already exists."""
    stmt = (
        insert_ignore(session, Entry)
        .values(feed_id=feed_id, link=link, title=title, published_at=published_at)
        .on_conflict_do_nothing(index_elements=["link"])
        .returning(Entry.id)
    )
    return session.execute(stmt).scalar_one_or_none()


def insert_field(session: Session, entry_id: int, name: str, lang_code: str, digest: str) -> None:
    stmt = (
        insert_ignore(session, Field)
        .values(entry_id=entry_id, name=name, lang_code=lang_code, hash=digest)
        .on_conflict_do_nothing(index_elements=["entry_id", "name", "lang_code"])
    )
    session.execute(stmt)


def list_window_entries(
    database: Database,
    since: datetime,
    field_name: str,
    lang_code: str,
) -> list[WindowEntry]:
    """Return entries published at or after ``since``, ordered by ascending entry id.

    Each row carries the hash of the requested field and the cached vector
    for that hash, if one exists.
    """
    stmt = (
        select(
            Entry.id,
            Entry.link,
            Entry.title,
            Entry.published_at,
            Field.hash,
            CachedEmbedding.id,
            CachedEmbedding.value,
        )
        .join(
            Field,
            and_(
                Field.entry_id == Entry.id,
                Field.name == field_name,
                Field.lang_code == lang_code,
            ),
        )
        .outerjoin(CachedEmbedding, CachedEmbedding.hash == Field.hash)
        .where(Entry.published_at >= since)
        .order_by(Entry.id)
    )
    try:
        with database.session() as session:
            rows = session.execute(stmt).all()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to list window entries: {exc}") from exc

    return [
        WindowEntry(
            entry_id=row[0],
            link=row[1],
            title=row[2],
            published_at=row[3],
            hash=row[4],
            embedding_id=row[5],
            vector=row[6],
        )
        for row in rows
    ]
