"""Content-addressed caches for embeddings and translations."""

from __future__ import annotations

import logging
from typing import Callable, Generic, Protocol, TypeVar

from common.errors import RunCancelled
from resolve_content.single_flight import SingleFlight, WaitTimeout
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

V = TypeVar("V")


class Store(Protocol[V]):
    def get(self, digest: str) -> V | None: ...

    def put(self, digest: str, value: V) -> None: ...


class ContentCache(Generic[V]):
    """
    Resolve values by content hash, computing each missing hash at most once.

    A stored value is returned without calling ``compute``. A missing value is
    computed by a single leader per hash; concurrent callers for the same hash
    share its outcome. Failures are never stored, so a later call retries.
    """

    def __init__(self, store: Store[V], name: str) -> None:
        self._store = store
        self._flight: SingleFlight[V] = SingleFlight()
        self.name = name

    def get(self, digest: str) -> V | None:
        return self._store.get(digest)

    def resolve(
        self,
        digest: str,
        text: str,
        compute: Callable[[str], V],
        run: RunContext | None = None,
    ) -> V:
        value = self._store.get(digest)
        if value is not None:
            return value

        while True:
            if run is not None:
                run.check()
            timeout = run.remaining() if run is not None else None
            try:
                return self._flight.do(
                    digest,
                    lambda: self._compute_and_store(digest, text, compute, run),
                    timeout=timeout,
                )
            except WaitTimeout:
                raise RunCancelled(
                    run.run_id, f"{self.name} {digest} still in flight at deadline"
                ) from None
            except RunCancelled as exc:
                # A leader from an earlier, cancelled run; become the leader instead.
                if run is None or exc.run_id == run.run_id:
                    raise
                logger.debug("Retrying %s %s after cancelled run %s", self.name, digest, exc.run_id)

    def _compute_and_store(
        self,
        digest: str,
        text: str,
        compute: Callable[[str], V],
        run: RunContext | None,
    ) -> V:
        value = self._store.get(digest)
        if value is not None:
            return value

        value = compute(text)
        if run is None:
            self._store.put(digest, value)
        else:
            with run.commit_guard():
                self._store.put(digest, value)
        logger.debug("Stored %s for %s", self.name, digest)
        return value
