"""Background worker: a queue-fed thread bound to one dedicated connection.

Units of work (callables, or SQL strings run with ``Database.run``) are
submitted from any thread and executed one after another on the worker's
thread. The worker holds its pooled connection for its whole lifetime, so
every unit sees the same session. With ``transaction=True`` the stream runs
inside one transaction that is rolled back at close time if any unit failed.

A failing unit does not stop the stream: the exception is collected in
``errors`` and the worker moves on to the next unit.

Usage::

    with db.worker(transaction=True) as w:
        for row in rows:
            w.submit(lambda row=row: db["items"].insert(row))
    w.errors   # [] when everything went in
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import InvalidOperationError, Rollback
from sqlspine.core.logging import get_logger

if TYPE_CHECKING:
    from sqlspine.core.database import Database

logger = get_logger(__name__)

_STOP = object()


class Worker(threading.Thread):
    """Serializes submitted units of work onto one connection."""

    def __init__(self, db: Database, transaction: bool = False, *, start: bool = True):
        super().__init__(name="sqlspine-worker", daemon=True)
        self.db = db
        self.use_transaction = transaction
        self.errors: list[BaseException] = []
        self.results: list[Any] = []
        self.rolled_back = False
        self.failure: BaseException | None = None
        self._queue: queue.Queue[Any] = queue.Queue()
        self._closed = False
        if start:
            self.start()

    def __repr__(self) -> str:
        return (
            f"<Worker pending={self._queue.qsize()} errors={len(self.errors)} "
            f"transaction={self.use_transaction}>"
        )

    def __enter__(self) -> Worker:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def submit(self, unit: Callable[[], Any] | str) -> Worker:
        if self._closed:
            raise InvalidOperationError("Cannot submit work to a closed worker")
        self._queue.put(unit)
        return self

    __lshift__ = submit

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Wait for the queue to drain, then stop the thread.

        Re-raises a failure that prevented the worker from running at all
        (for example a pool timeout while acquiring its connection).
        """
        if not self._closed:
            self._closed = True
            self._queue.put(_STOP)
        self.join()
        logger.info(
            "worker.closed",
            processed=len(self.results) + len(self.errors),
            errors=len(self.errors),
            rolled_back=self.rolled_back,
        )
        if self.failure is not None:
            raise self.failure

    def run(self) -> None:
        try:
            with self.db.synchronize():
                if self.use_transaction:
                    with self.db.transaction():
                        self._drain()
                        if self.errors:
                            self.rolled_back = True
                            raise Rollback()
                else:
                    self._drain()
        except Exception as exc:
            self.failure = exc
            logger.error("worker.failed", error_type=type(exc).__name__, error=str(exc))

    def _drain(self) -> None:
        while True:
            unit = self._queue.get()
            try:
                if unit is _STOP:
                    return
                self._run_unit(unit)
            finally:
                self._queue.task_done()

    def _run_unit(self, unit: Any) -> None:
        try:
            if isinstance(unit, str):
                self.results.append(self.db.run(unit))
            else:
                self.results.append(unit())
        except Exception as exc:
            self.errors.append(exc)
            logger.warning(
                "worker.unit_failed",
                unit_index=len(self.results) + len(self.errors) - 1,
                error_type=type(exc).__name__,
                error=str(exc),
            )


__all__ = ["Worker"]
