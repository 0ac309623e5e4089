"""Database engine and session management."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from news_db.models import Base, Feed

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and hands out short-lived sessions.

    Sessions are not shared between threads; every call opens its own.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine: Engine = create_engine(url, echo=echo, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for a session with rollback on error."""
        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create all tables that don't exist yet."""
        Base.metadata.create_all(self.engine)

    def seed_feeds(self, feeds: list[dict]) -> int:
        """Insert feed rows that are not present yet. Existing rows are left alone."""
        inserted = 0
        with self.session() as session:
            for data in feeds:
                if session.get(Feed, data["id"]) is not None:
                    continue
                session.add(Feed(**data))
                inserted += 1
            session.commit()
        if inserted:
            logger.info("Seeded %d feeds", inserted)
        return inserted

    def dispose(self) -> None:
        self.engine.dispose()
