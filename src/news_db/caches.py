"""Hash-keyed stores backing the embedding and translation caches.

Rows are append-only: ``put`` on an existing hash is a no-op.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from common.errors import PersistenceError
from news_db.connection import Database
from news_db.entries import insert_ignore
from news_db.models import CachedEmbedding, CachedTranslation


class EmbeddingStore:
    def __init__(self, database: Database) -> None:
        self._database = database

    def get(self, digest: str) -> list[float] | None:
        try:
            with self._database.session() as session:
                return session.execute(
                    select(CachedEmbedding.value).where(CachedEmbedding.hash == digest)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read embedding {digest}: {exc}") from exc

    def put(self, digest: str, value: list[float]) -> None:
        try:
            with self._database.session() as session:
                session.execute(
                    insert_ignore(session, CachedEmbedding)
                    .values(hash=digest, value=list(value), size=len(value))
                    .on_conflict_do_nothing(index_elements=["hash"])
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to store embedding {digest}: {exc}") from exc


class TranslationStore:
    def __init__(self, database: Database, lang_code: str = "en") -> None:
        self._database = database
        self._lang_code = lang_code

    def get(self, digest: str) -> str | None:
        try:
            with self._database.session() as session:
                return session.execute(
                    select(CachedTranslation.value).where(
                        CachedTranslation.hash == digest,
                        CachedTranslation.lang_code == self._lang_code,
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read translation {digest}: {exc}") from exc

    def put(self, digest: str, value: str) -> None:
        try:
            with self._database.session() as session:
                session.execute(
                    insert_ignore(session, CachedTranslation)
                    .values(hash=digest, value=value, lang_code=self._lang_code)
                    .on_conflict_do_nothing(index_elements=["hash", "lang_code"])
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to store translation {digest}: {exc}") from exc
