"""Tests for the threaded and single-threaded connection pools."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from sqlspine.core.errors import DatabaseConnectionError, PoolTimeoutError
from sqlspine.core.pool import SingleThreadedPool, ThreadedConnectionPool, current_caller


def make_pool(max_size: int = 2, timeout: float = 0.2, **kwargs) -> ThreadedConnectionPool:
    return ThreadedConnectionPool(lambda: object(), max_size=max_size, timeout=timeout, **kwargs)


# =============================================================================
# THREADED POOL
# =============================================================================


class TestAcquireRelease:
    def test_acquire_creates_lazily(self) -> None:
        pool = make_pool()
        assert pool.size == 0
        conn = pool.acquire("a")
        assert pool.size == 1
        assert pool.in_use_count == 1
        assert conn.owner == "a"
        pool.release(conn, "a")
        assert pool.in_use_count == 0
        assert pool.available_count == 1

    def test_released_connection_is_reused(self) -> None:
        pool = make_pool()
        first = pool.acquire("a")
        pool.release(first, "a")
        second = pool.acquire("b")
        assert second is first
        assert pool.size == 1

    def test_distinct_callers_get_distinct_connections(self) -> None:
        pool = make_pool()
        a = pool.acquire("a")
        b = pool.acquire("b")
        assert a is not b
        assert a.raw is not b.raw

    def test_reentrant_for_same_caller(self) -> None:
        pool = make_pool(max_size=1)
        outer = pool.acquire("a")
        inner = pool.acquire("a")
        assert inner is outer
        assert outer.depth == 2
        pool.release(inner, "a")
        assert pool.in_use_count == 1
        pool.release(outer, "a")
        assert pool.in_use_count == 0

    def test_release_is_idempotent(self) -> None:
        pool = make_pool()
        conn = pool.acquire("a")
        pool.release(conn, "a")
        pool.release(conn, "a")
        assert pool.available_count == 1
        assert pool.in_use_count == 0

    def test_release_by_other_caller_is_noop(self) -> None:
        pool = make_pool()
        conn = pool.acquire("a")
        pool.release(conn, "b")
        assert pool.held_by("a") is conn

    def test_default_caller_is_thread(self) -> None:
        pool = make_pool()
        conn = pool.acquire()
        assert conn.owner == current_caller()
        assert pool.held_by() is conn


class TestScopedAcquisition:
    def test_hold_releases_on_error(self) -> None:
        pool = make_pool()
        with pytest.raises(ValueError):
            with pool.hold("a"):
                raise ValueError("boom")
        assert pool.in_use_count == 0
        assert pool.available_count == 1

    def test_with_connection(self) -> None:
        pool = make_pool()
        raw = pool.with_connection(lambda c: c, "a")
        assert raw is not None
        assert pool.in_use_count == 0

    def test_connection_error_discards(self) -> None:
        closer = MagicMock()
        pool = ThreadedConnectionPool(lambda: object(), closer, max_size=1, timeout=0.1)
        with pytest.raises(DatabaseConnectionError):
            with pool.hold("a"):
                raise DatabaseConnectionError("lost")
        assert pool.size == 0
        closer.assert_called_once()


class TestTimeout:
    @pytest.mark.slow
    def test_second_caller_times_out(self) -> None:
        pool = make_pool(max_size=1, timeout=0.1)
        pool.acquire("holder")
        start = time.monotonic()
        with pytest.raises(PoolTimeoutError) as exc_info:
            pool.acquire("waiter")
        assert time.monotonic() - start >= 0.09
        assert exc_info.value.retryable is True
        assert exc_info.value.context.caller_id == "waiter"
        assert pool.waiting_count == 0
        assert pool.in_use_count == 1
        assert pool.size == 1

    @pytest.mark.slow
    def test_waiter_wakes_on_release(self) -> None:
        pool = make_pool(max_size=1, timeout=2.0)
        held = pool.acquire("holder")
        got: list = []

        def waiter() -> None:
            got.append(pool.acquire("waiter"))

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        pool.release(held, "holder")
        thread.join(timeout=2)
        assert got == [held]
        assert held.owner == "waiter"


class TestConnectFailure:
    def test_failed_connect_frees_slot(self) -> None:
        attempts = {"n": 0}

        def flaky() -> object:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise OSError("refused")
            return object()

        pool = ThreadedConnectionPool(flaky, max_size=1, timeout=0.1)
        with pytest.raises(DatabaseConnectionError) as exc_info:
            pool.acquire("a")
        assert isinstance(exc_info.value.__cause__, OSError)
        assert pool.size == 0
        assert pool.acquire("a") is not None
        assert pool.size == 1


class TestConcurrency:
    @pytest.mark.slow
    def test_in_use_never_exceeds_max(self) -> None:
        pool = make_pool(max_size=3, timeout=5.0)
        peak = {"value": 0}
        owners: dict[int, object] = {}
        lock = threading.Lock()
        errors: list[BaseException] = []

        def work() -> None:
            try:
                for _ in range(20):
                    with pool.hold() as raw:
                        with lock:
                            peak["value"] = max(peak["value"], pool.in_use_count)
                            assert id(raw) not in owners
                            owners[id(raw)] = threading.get_ident()
                        time.sleep(0.001)
                        with lock:
                            del owners[id(raw)]
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert peak["value"] <= 3
        assert pool.size <= 3
        assert pool.in_use_count == 0


class TestDisconnect:
    def test_closes_idle_connections(self) -> None:
        closer = MagicMock()
        pool = ThreadedConnectionPool(lambda: object(), closer, max_size=2)
        a = pool.acquire("a")
        b = pool.acquire("b")
        pool.release(a, "a")
        pool.disconnect()
        assert closer.call_count == 1
        assert pool.size == 1
        assert pool.held_by("b") is b

    def test_close_failure_surfaces(self) -> None:
        def bad_close(raw: object) -> None:
            raise OSError("close failed")

        pool = ThreadedConnectionPool(lambda: object(), bad_close, max_size=1)
        pool.release(pool.acquire("a"), "a")
        with pytest.raises(DatabaseConnectionError):
            pool.disconnect()
        assert pool.size == 0

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            ThreadedConnectionPool(lambda: object(), max_size=0)


# =============================================================================
# SINGLE-THREADED POOL
# =============================================================================


class TestSingleThreadedPool:
    def test_one_shared_connection(self) -> None:
        pool = SingleThreadedPool(lambda: object())
        a = pool.acquire("a")
        b = pool.acquire("b")
        assert a is b
        assert pool.size == 1
        pool.release(b, "b")
        pool.release(a, "a")
        assert pool.in_use_count == 0
        assert pool.available_count == 1

    def test_never_blocks(self) -> None:
        pool = SingleThreadedPool(lambda: object(), timeout=0.01)
        conns = [pool.acquire(i) for i in range(5)]
        assert len({id(c) for c in conns}) == 1

    def test_disconnect(self) -> None:
        closer = MagicMock()
        pool = SingleThreadedPool(lambda: object(), closer)
        pool.acquire()
        pool.disconnect()
        closer.assert_called_once()
        assert pool.size == 0
