"""Tests for resolve_content.content_cache module."""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from common.errors import RetryableProviderError, RunCancelled
from common.hashing import content_hash
from resolve_content.content_cache import ContentCache
from run_pipeline.run_context import RunContext

DIGEST = content_hash("Brand i Göteborg", "sv")


class DictStore:
    def __init__(self, values=None) -> None:
        self.values = dict(values or {})
        self.puts = []

    def get(self, digest):
        return self.values.get(digest)

    def put(self, digest, value) -> None:
        self.puts.append(digest)
        self.values.setdefault(digest, value)


class TestResolve:
    def test_hit_does_not_compute(self) -> None:
        cache = ContentCache(DictStore({DIGEST: [1.0, 2.0]}), "embedding")
        compute = MagicMock()
        assert cache.resolve(DIGEST, "Brand i Göteborg", compute) == [1.0, 2.0]
        compute.assert_not_called()

    def test_miss_computes_and_stores(self) -> None:
        store = DictStore()
        cache = ContentCache(store, "embedding")
        compute = MagicMock(return_value=[0.5])

        assert cache.resolve(DIGEST, "Brand i Göteborg", compute) == [0.5]
        assert cache.resolve(DIGEST, "Brand i Göteborg", compute) == [0.5]

        compute.assert_called_once_with("Brand i Göteborg")
        assert store.values == {DIGEST: [0.5]}

    def test_concurrent_callers_compute_once(self) -> None:
        store = DictStore()
        cache = ContentCache(store, "embedding")
        calls = []
        lock = threading.Lock()

        def compute(text):
            with lock:
                calls.append(text)
            threading.Event().wait(0.1)
            return [float(len(text))]

        with ThreadPoolExecutor(max_workers=16) as executor:
            futures = [
                executor.submit(cache.resolve, DIGEST, "Brand i Göteborg", compute)
                for _ in range(16)
            ]
            results = [future.result(timeout=5) for future in futures]

        assert len(calls) == 1
        assert results == [[16.0]] * 16
        assert store.puts == [DIGEST]

    def test_failure_is_not_stored_and_later_call_retries(self) -> None:
        store = DictStore()
        cache = ContentCache(store, "translation")
        compute = MagicMock(side_effect=[RetryableProviderError("rate limited"), "Fire"])

        with pytest.raises(RetryableProviderError):
            cache.resolve(DIGEST, "Brand", compute)
        assert store.values == {}

        assert cache.resolve(DIGEST, "Brand", compute) == "Fire"
        assert compute.call_count == 2

    def test_cancelled_run_never_writes(self) -> None:
        store = DictStore()
        cache = ContentCache(store, "embedding")
        run = RunContext(time_budget_seconds=60)

        def compute(text):
            run.cancel()
            return [1.0]

        with pytest.raises(RunCancelled) as excinfo:
            cache.resolve(DIGEST, "Brand", compute, run)

        assert excinfo.value.run_id == run.run_id
        assert store.puts == []

    def test_cancelled_run_is_refused_before_compute(self) -> None:
        run = RunContext(time_budget_seconds=60)
        run.cancel()
        compute = MagicMock()
        with pytest.raises(RunCancelled):
            ContentCache(DictStore(), "embedding").resolve(DIGEST, "Brand", compute, run)
        compute.assert_not_called()

    def test_waiter_takes_over_from_abandoned_leader(self) -> None:
        store = DictStore()
        cache = ContentCache(store, "embedding")
        old_run = RunContext(time_budget_seconds=60)
        new_run = RunContext(time_budget_seconds=60)
        leader_started = threading.Event()
        release_leader = threading.Event()
        calls = []

        def compute(text):
            calls.append(text)
            if len(calls) == 1:
                leader_started.set()
                release_leader.wait(5)
                return [0.0]
            return [1.0]

        with ThreadPoolExecutor(max_workers=2) as executor:
            abandoned = executor.submit(cache.resolve, DIGEST, "Brand", compute, old_run)
            leader_started.wait(5)
            waiter = executor.submit(cache.resolve, DIGEST, "Brand", compute, new_run)
            old_run.cancel()
            release_leader.set()

            with pytest.raises(RunCancelled):
                abandoned.result(timeout=5)
            assert waiter.result(timeout=5) == [1.0]

        assert store.values == {DIGEST: [1.0]}
        assert len(calls) == 2

    def test_waiter_gives_up_at_deadline(self) -> None:
        cache = ContentCache(DictStore(), "embedding")
        started = threading.Event()
        release = threading.Event()

        def slow(text):
            started.set()
            release.wait(5)
            return [1.0]

        short_run = RunContext(time_budget_seconds=0.1)
        with ThreadPoolExecutor(max_workers=1) as executor:
            leader = executor.submit(cache.resolve, DIGEST, "Brand", slow)
            started.wait(5)
            with pytest.raises(RunCancelled) as excinfo:
                cache.resolve(DIGEST, "Brand", slow, short_run)
            release.set()
            assert leader.result(timeout=5) == [1.0]

        assert excinfo.value.run_id == short_run.run_id

    def test_write_for_one_hash_does_not_block_another(self) -> None:
        other = content_hash("Snöstorm i Norrland", "sv")
        writing = threading.Event()
        release = threading.Event()

        class SlowStore(DictStore):
            def put(self, digest, value) -> None:
                if digest == DIGEST:
                    writing.set()
                    release.wait(5)
                super().put(digest, value)

        store = SlowStore()
        cache = ContentCache(store, "embedding")
        run = RunContext(time_budget_seconds=60)

        with ThreadPoolExecutor(max_workers=2) as executor:
            slow = executor.submit(cache.resolve, DIGEST, "Brand", lambda text: [1.0], run)
            assert writing.wait(5)
            try:
                fast = executor.submit(cache.resolve, other, "Snöstorm", lambda text: [2.0], run)
                assert fast.result(timeout=2) == [2.0]
                assert other in store.values
                assert not slow.done()
            finally:
                release.set()
            assert slow.result(timeout=5) == [1.0]
