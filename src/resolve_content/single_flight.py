"""Per-key deduplication of concurrent computations."""

from __future__ import annotations

import logging
import threading
from concurrent import futures
from concurrent.futures import Future
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WaitTimeout(Exception):
    """A waiter gave up before the in-flight computation finished."""

    def __init__(self, key: str) -> None:
        super().__init__(f"timed out waiting for in-flight computation of {key}")
        self.key = key


class SingleFlight(Generic[T]):
    """
    Run at most one computation per key at a time.

    The first caller for a key (the leader) runs ``fn`` in its own thread.
    Callers arriving while it runs block on the leader's future and receive
    the same value or the same exception. The lock only guards the in-flight
    map; it is never held while ``fn`` runs, so unrelated keys never wait on
    each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, Future] = {}

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)

    def do(self, key: str, fn: Callable[[], T], timeout: float | None = None) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            logger.debug("Waiting for in-flight computation of %s", key)
            try:
                return future.result(timeout=timeout)
            except futures.TimeoutError:
                if future.done():
                    raise
                raise WaitTimeout(key) from None

        try:
            value = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(value)
            return value
        finally:
            with self._lock:
                self._calls.pop(key, None)
