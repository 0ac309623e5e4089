"""Tests for common.retry module."""

from unittest.mock import MagicMock

import pytest

from common.errors import FatalProviderError, RetryableProviderError
from common.retry import RetryPolicy, call_with_retry

NO_WAIT = RetryPolicy(max_attempts=3, backoff_seconds=0, backoff_max_seconds=0)


class TestCallWithRetry:
    def test_returns_first_success(self) -> None:
        fn = MagicMock(return_value="ok")
        assert call_with_retry(fn, NO_WAIT, RetryableProviderError) == "ok"
        assert fn.call_count == 1

    def test_retries_until_success(self) -> None:
        fn = MagicMock(side_effect=[RetryableProviderError("busy"), "ok"])
        assert call_with_retry(fn, NO_WAIT, RetryableProviderError) == "ok"
        assert fn.call_count == 2

    def test_attempt_ceiling_reraises_last_error(self) -> None:
        fn = MagicMock(side_effect=RetryableProviderError("rate limited"))
        with pytest.raises(RetryableProviderError, match="rate limited"):
            call_with_retry(fn, NO_WAIT, RetryableProviderError)
        assert fn.call_count == 3

    def test_other_errors_are_not_retried(self) -> None:
        fn = MagicMock(side_effect=FatalProviderError("bad key"))
        with pytest.raises(FatalProviderError):
            call_with_retry(fn, NO_WAIT, RetryableProviderError)
        assert fn.call_count == 1

    def test_stops_when_cancelled(self) -> None:
        fn = MagicMock(side_effect=RetryableProviderError("timeout"))
        with pytest.raises(RetryableProviderError):
            call_with_retry(fn, NO_WAIT, RetryableProviderError, cancelled=lambda: True)
        assert fn.call_count == 1

    def test_uses_custom_sleep(self) -> None:
        sleep = MagicMock()
        policy = RetryPolicy(max_attempts=2, backoff_seconds=1.0, backoff_max_seconds=5.0)
        fn = MagicMock(side_effect=[RetryableProviderError("busy"), "ok"])
        assert call_with_retry(fn, policy, RetryableProviderError, sleep=sleep) == "ok"
        sleep.assert_called_once()
