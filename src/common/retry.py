"""Bounded exponential backoff for network calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_max_seconds: float = 30.0


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    retry_on: type[BaseException] | tuple[type[BaseException], ...],
    cancelled: Callable[[], bool] | None = None,
    sleep: Callable[[float], Any] | None = None,
) -> T:
    """Call ``fn`` and retry on ``retry_on`` errors with exponential backoff.

    Gives up after ``policy.max_attempts`` attempts, or as soon as
    ``cancelled()`` is true, and re-raises the last error. ``sleep``
    replaces the backoff sleep, e.g. with an event wait that returns early
    on cancellation.
    """
    stop = stop_after_attempt(policy.max_attempts)
    if cancelled is not None:
        stop = stop | (lambda retry_state: cancelled())

    kwargs = {"sleep": sleep} if sleep is not None else {}
    retrying = Retrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop,
        wait=wait_exponential(multiplier=policy.backoff_seconds, max=policy.backoff_max_seconds),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        **kwargs,
    )
    return retrying(fn)
