"""Per-run state: identity, deadline, state history and cancellation."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator

from common.errors import RunCancelled

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    INGESTING = "ingesting"
    HASHING = "hashing"
    EMBEDDING = "embedding"
    CLUSTERING = "clustering"
    SELECTING = "selecting"
    TRANSLATING = "translating"
    SCORING = "scoring"
    PUBLISHING = "publishing"
    FAILED = "failed"


STAGE_ORDER = [
    RunState.IDLE,
    RunState.INGESTING,
    RunState.HASHING,
    RunState.EMBEDDING,
    RunState.CLUSTERING,
    RunState.SELECTING,
    RunState.TRANSLATING,
    RunState.SCORING,
    RunState.PUBLISHING,
]


@dataclass
class RunContext:
    """
    Everything that belongs to a single pipeline run.

    Created when a run starts and dropped when it ends. Cancellation is a
    one-way flag; once set, ``commit_guard`` refuses every further cache
    write from this run, including writes by abandoned worker threads.
    """

    time_budget_seconds: float
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    clock: Callable[[], float] = time.monotonic
    state: RunState = RunState.IDLE
    history: list[RunState] = field(default_factory=lambda: [RunState.IDLE])

    def __post_init__(self) -> None:
        self.deadline = self.clock() + self.time_budget_seconds
        self.cancel_event = threading.Event()
        self._commit_cond = threading.Condition()
        self._writers = 0

    def remaining(self) -> float:
        return max(0.0, self.deadline - self.clock())

    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def is_expired(self) -> bool:
        return self.clock() >= self.deadline

    def cancel(self) -> None:
        """Set the cancel flag, then wait for writes already inside commit_guard."""
        with self._commit_cond:
            if not self.cancel_event.is_set():
                logger.warning("Cancelling run %s", self.run_id)
            self.cancel_event.set()
            while self._writers:
                self._commit_cond.wait()

    def check(self) -> None:
        """Raise RunCancelled if the run was cancelled or its budget is spent."""
        if not self.is_cancelled() and self.is_expired():
            self.cancel()
        if self.is_cancelled():
            raise RunCancelled(self.run_id)

    def advance(self, state: RunState) -> None:
        """Move to the next stage.

        Stages only move forward and PUBLISHING returns to IDLE. FAILED is
        reachable from any state and is terminal.
        """
        if state == RunState.FAILED:
            if self.state == RunState.FAILED:
                return
        elif state == RunState.IDLE:
            if self.state != RunState.PUBLISHING:
                raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")
        else:
            self.check()
            if state not in STAGE_ORDER or self.state not in STAGE_ORDER:
                raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")
            if STAGE_ORDER.index(state) <= STAGE_ORDER.index(self.state):
                raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")

        logger.info("Run %s: %s -> %s", self.run_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    @contextmanager
    def commit_guard(self) -> Iterator[None]:
        """Admit a write unless the run is cancelled.

        Writers share the guard, so writes for different hashes run side by
        side; only ``cancel`` waits for them.
        """
        with self._commit_cond:
            if self.cancel_event.is_set():
                raise RunCancelled(self.run_id, "write refused after cancellation")
            self._writers += 1
        try:
            yield
        finally:
            with self._commit_cond:
                self._writers -= 1
                if not self._writers:
                    self._commit_cond.notify_all()
