"""Connection pools: exclusive, bounded, reentrant per caller.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREADED POOL                                                                │
│                                                                               │
│   acquire(caller)                                                             │
│      │                                                                        │
│      ├── caller already holds a connection? ──► same connection, depth += 1   │
│      │                                                                        │
│      ├── idle connection available? ─────────► hand it out                    │
│      │                                                                        │
│      ├── created < max_size? ────────────────► reserve slot, connect()        │
│      │                                          outside the lock; on failure  │
│      │                                          the slot is given back        │
│      │                                                                        │
│      └── wait on Condition (remaining timeout)                                │
│             └── timed out ──► PoolTimeoutError (waiter count restored)        │
│                                                                               │
│   release(conn, caller)                                                       │
│      ├── not held by caller ─► no-op                                          │
│      ├── depth > 1 ──────────► depth -= 1                                     │
│      └── depth == 1 ─────────► back to idle list, notify() one waiter         │
│                                                                               │
│  Invariants:                                                                  │
│  1. in_use_count <= created <= max_size                                       │
│  2. a connection is held by at most one caller                                │
│  3. a timed-out or failed acquire leaves every counter as it found it         │
└──────────────────────────────────────────────────────────────────────────────┘

The caller identity defaults to the current thread id. Passing an explicit
``caller_id`` lets a task or a long-lived worker keep its affinity across
threads. ``SingleThreadedPool`` keeps one shared connection and never
blocks; callers are trusted not to use it concurrently.
"""

from __future__ import annotations

import itertools
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlspine.core.errors import DatabaseConnectionError, PoolTimeoutError
from sqlspine.core.logging import get_logger
from sqlspine.core.protocols import ConnectionFactory

logger = get_logger(__name__)

T = TypeVar("T")

_connection_ids = itertools.count(1)


def current_caller() -> int:
    """Default caller identity: the current thread."""
    return threading.get_ident()


@dataclass(eq=False)
class PooledConnection:
    """A physical connection plus the pool's bookkeeping for it."""

    raw: Any
    id: int = field(default_factory=lambda: next(_connection_ids))
    owner: Any = None
    depth: int = 0
    created_at: float = field(default_factory=time.monotonic)

    @property
    def in_use(self) -> bool:
        return self.owner is not None

    def __repr__(self) -> str:
        state = f"owner={self.owner!r}" if self.in_use else "idle"
        return f"<PooledConnection #{self.id} {state}>"


class ConnectionPool(ABC):
    """Common surface of both pool flavours."""

    def __init__(
        self,
        factory: ConnectionFactory,
        closer: Callable[[Any], None] | None = None,
    ):
        self._factory = factory
        self._closer = closer

    @abstractmethod
    def acquire(self, caller_id: Any = None, timeout: float | None = None) -> PooledConnection:
        ...

    @abstractmethod
    def release(self, connection: PooledConnection, caller_id: Any = None) -> None:
        ...

    @abstractmethod
    def discard(self, connection: PooledConnection, caller_id: Any = None) -> None:
        """Drop a broken connection without returning it to the pool."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close every idle connection."""
        ...

    @property
    @abstractmethod
    def size(self) -> int:
        ...

    @property
    @abstractmethod
    def in_use_count(self) -> int:
        ...

    @property
    @abstractmethod
    def available_count(self) -> int:
        ...

    @abstractmethod
    def held_by(self, caller_id: Any = None) -> PooledConnection | None:
        """The connection ``caller_id`` currently holds, if any."""
        ...

    @contextmanager
    def hold(self, caller_id: Any = None) -> Iterator[Any]:
        """Scoped acquisition yielding the raw connection."""
        connection = self.acquire(caller_id)
        try:
            yield connection.raw
        except DatabaseConnectionError:
            self.discard(connection, caller_id)
            raise
        except BaseException:
            self.release(connection, caller_id)
            raise
        else:
            self.release(connection, caller_id)

    def with_connection(self, fn: Callable[[Any], T], caller_id: Any = None) -> T:
        """Call ``fn(raw_connection)`` and release on every exit path."""
        with self.hold(caller_id) as raw:
            return fn(raw)

    def _connect(self) -> Any:
        try:
            return self._factory()
        except DatabaseConnectionError:
            raise
        except Exception as exc:
            raise DatabaseConnectionError(f"Failed to open connection: {exc}", cause=exc) from exc

    def _close(self, raw: Any) -> Exception | None:
        if self._closer is None:
            return None
        try:
            self._closer(raw)
        except Exception as exc:
            logger.warning("pool.close_failed", error=str(exc))
            return exc
        return None


# =============================================================================
# THREADED POOL
# =============================================================================


class ThreadedConnectionPool(ConnectionPool):
    """Bounded pool shared by many threads.

    Example:
        >>> pool = ThreadedConnectionPool(factory=lambda: object(), max_size=2)
        >>> with pool.hold() as raw:
        ...     pool.in_use_count
        1
        >>> pool.in_use_count
        0
    """

    def __init__(
        self,
        factory: ConnectionFactory,
        closer: Callable[[Any], None] | None = None,
        *,
        max_size: int = 4,
        timeout: float = 5.0,
    ):
        super().__init__(factory, closer)
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.timeout = timeout
        self._cond = threading.Condition()
        self._available: list[PooledConnection] = []
        self._allocated: dict[Any, PooledConnection] = {}
        self._created = 0
        self._waiting = 0

    def __repr__(self) -> str:
        return (
            f"<ThreadedConnectionPool size={self._created}/{self.max_size} "
            f"in_use={len(self._allocated)}>"
        )

    # -- stats ---------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._cond:
            return self._created

    @property
    def in_use_count(self) -> int:
        with self._cond:
            return len(self._allocated)

    @property
    def available_count(self) -> int:
        with self._cond:
            return len(self._available)

    @property
    def waiting_count(self) -> int:
        with self._cond:
            return self._waiting

    def held_by(self, caller_id: Any = None) -> PooledConnection | None:
        caller = current_caller() if caller_id is None else caller_id
        with self._cond:
            return self._allocated.get(caller)

    # -- acquire / release ---------------------------------------------------

    def acquire(self, caller_id: Any = None, timeout: float | None = None) -> PooledConnection:
        """Return the caller's connection, blocking up to ``timeout`` seconds.

        Raises:
            PoolTimeoutError: No connection freed up in time.
            DatabaseConnectionError: A new connection could not be opened.
        """
        caller = current_caller() if caller_id is None else caller_id
        wait_for = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + wait_for

        with self._cond:
            held = self._allocated.get(caller)
            if held is not None:
                held.depth += 1
                return held

            while True:
                if self._available:
                    connection = self._available.pop()
                    self._assign(connection, caller)
                    return connection
                if self._created < self.max_size:
                    # Reserve the slot, connect outside the lock.
                    self._created += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(
                        "pool.timeout",
                        caller_id=caller,
                        timeout=wait_for,
                        max_size=self.max_size,
                    )
                    raise PoolTimeoutError(
                        f"No connection available within {wait_for}s "
                        f"(max_connections={self.max_size})",
                        retry_after=1,
                    ).with_context(caller_id=caller)
                self._waiting += 1
                try:
                    self._cond.wait(remaining)
                finally:
                    self._waiting -= 1

        try:
            raw = self._connect()
        except DatabaseConnectionError as exc:
            with self._cond:
                self._created -= 1
                self._cond.notify()
            raise exc.with_context(caller_id=caller)

        connection = PooledConnection(raw)
        with self._cond:
            self._assign(connection, caller)
            size = self._created
        logger.debug("pool.connection_created", connection_id=connection.id, pool_size=size)
        return connection

    def _assign(self, connection: PooledConnection, caller: Any) -> None:
        connection.owner = caller
        connection.depth = 1
        self._allocated[caller] = connection

    def release(self, connection: PooledConnection, caller_id: Any = None) -> None:
        """Give the connection back. Releasing what is not held is a no-op."""
        caller = current_caller() if caller_id is None else caller_id
        with self._cond:
            if self._allocated.get(caller) is not connection:
                return
            connection.depth -= 1
            if connection.depth > 0:
                return
            del self._allocated[caller]
            connection.owner = None
            self._available.append(connection)
            self._cond.notify()

    def discard(self, connection: PooledConnection, caller_id: Any = None) -> None:
        caller = current_caller() if caller_id is None else caller_id
        with self._cond:
            if self._allocated.get(caller) is not connection:
                return
            del self._allocated[caller]
            connection.owner = None
            connection.depth = 0
            self._created -= 1
            self._cond.notify()
        self._close(connection.raw)
        logger.warning("pool.connection_discarded", connection_id=connection.id)

    def disconnect(self) -> None:
        """Close idle connections. Connections in use are left alone.

        Raises:
            DatabaseConnectionError: At least one connection failed to close
                (every idle connection is still removed from the pool).
        """
        with self._cond:
            idle, self._available = self._available, []
            self._created -= len(idle)
            self._cond.notify_all()
        failures = [exc for exc in (self._close(c.raw) for c in idle) if exc is not None]
        logger.info("pool.disconnect", closed=len(idle), failed=len(failures))
        if failures:
            raise DatabaseConnectionError(
                f"{len(failures)} connection(s) failed to close", cause=failures[0]
            )


# =============================================================================
# SINGLE-THREADED POOL
# =============================================================================


class SingleThreadedPool(ConnectionPool):
    """One lazily opened connection shared by every caller. Never blocks."""

    def __init__(
        self,
        factory: ConnectionFactory,
        closer: Callable[[Any], None] | None = None,
        **_: Any,
    ):
        super().__init__(factory, closer)
        self.max_size = 1
        self._connection: PooledConnection | None = None

    def __repr__(self) -> str:
        return f"<SingleThreadedPool connected={self._connection is not None}>"

    @property
    def size(self) -> int:
        return 0 if self._connection is None else 1

    @property
    def in_use_count(self) -> int:
        return 1 if self._connection is not None and self._connection.depth > 0 else 0

    @property
    def available_count(self) -> int:
        return self.size - self.in_use_count

    def held_by(self, caller_id: Any = None) -> PooledConnection | None:
        if self._connection is not None and self._connection.depth > 0:
            return self._connection
        return None

    def acquire(self, caller_id: Any = None, timeout: float | None = None) -> PooledConnection:
        if self._connection is None:
            self._connection = PooledConnection(self._connect())
            logger.debug("pool.connection_created", connection_id=self._connection.id, pool_size=1)
        connection = self._connection
        connection.owner = current_caller() if caller_id is None else caller_id
        connection.depth += 1
        return connection

    def release(self, connection: PooledConnection, caller_id: Any = None) -> None:
        if connection is not self._connection or connection.depth == 0:
            return
        connection.depth -= 1
        if connection.depth == 0:
            connection.owner = None

    def discard(self, connection: PooledConnection, caller_id: Any = None) -> None:
        if connection is not self._connection:
            return
        self._connection = None
        self._close(connection.raw)
        logger.warning("pool.connection_discarded", connection_id=connection.id)

    def disconnect(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        failure = self._close(connection.raw)
        logger.info("pool.disconnect", closed=1, failed=int(failure is not None))
        if failure is not None:
            raise DatabaseConnectionError("connection failed to close", cause=failure)


__all__ = [
    "ConnectionPool",
    "ThreadedConnectionPool",
    "SingleThreadedPool",
    "PooledConnection",
    "current_caller",
]
