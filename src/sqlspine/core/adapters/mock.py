"""Mock driver: records SQL instead of sending it anywhere.

Used to test rendering and execution paths without a database, and to
render SQL for a dialect that has no driver installed::

    db = connect("mock://?dialect=mysql", fetch=[{"id": 1}], numrows=3)
    db["items"].all()          # → [{"id": 1}]
    db.sqls                    # → ["SELECT * FROM items"]

Options (URL query or keyword overrides to ``connect``):

``dialect``
    Backend to render as (default ``generic``).
``fetch``
    Rows returned by row-producing statements: a dict (one row), a list
    of dicts, or a callable ``fetch(sql)`` returning either.
``numrows``
    Row count reported by UPDATE/DELETE (default 0).
``autoid``
    ``lastrowid`` for INSERT: an int (incremented per insert) or a
    callable ``autoid(sql)``.
``columns``
    ``{table: [column, ...]}`` metadata reported by ``table_columns``.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from typing import Any

from .base import Driver, ExecutionResult

_ROW_STATEMENTS = ("SELECT", "CALL", "WITH", "VALUES", "PRAGMA")


class MockConnection:
    """Stand-in physical connection. Keeps its own statement log."""

    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.id = next(self._ids)
        self.sqls: list[str] = []
        self.closed = False

    def __repr__(self) -> str:
        return f"<MockConnection #{self.id}{' closed' if self.closed else ''}>"


class MockDriver(Driver):
    """Driver that logs every statement and answers from canned data."""

    scheme = "mock"

    def __init__(self, options):
        super().__init__(options)
        extra = options.extra
        self.fetch: Any = extra.get("fetch")
        self.numrows = int(extra.get("numrows", 0))
        self.columns: dict[str, list[str]] = dict(extra.get("columns") or {})
        autoid = extra.get("autoid")
        self._autoid: Callable[[str], Any] | None
        if autoid is None:
            self._autoid = None
        elif callable(autoid):
            self._autoid = autoid
        else:
            counter = itertools.count(int(autoid))
            self._autoid = lambda sql: next(counter)
        self.sqls: list[str] = []
        self.connections: list[MockConnection] = []
        self._lock = threading.Lock()

    def connect(self) -> MockConnection:
        conn = MockConnection()
        with self._lock:
            self.connections.append(conn)
        return conn

    def close(self, raw: MockConnection) -> None:
        raw.closed = True

    def execute(self, raw: MockConnection, sql: str) -> ExecutionResult:
        with self._lock:
            self.sqls.append(sql)
        raw.sqls.append(sql)

        verb = sql.lstrip("( ").split(" ", 1)[0].upper()
        if verb in _ROW_STATEMENTS:
            return self._rows(sql)
        if verb == "INSERT":
            lastrowid = self._autoid(sql) if self._autoid else None
            return ExecutionResult(rowcount=1, lastrowid=lastrowid)
        if verb in ("UPDATE", "DELETE"):
            return ExecutionResult(rowcount=self.numrows)
        return ExecutionResult()

    def _rows(self, sql: str) -> ExecutionResult:
        data = self.fetch(sql) if callable(self.fetch) else self.fetch
        if data is None:
            return ExecutionResult(rowcount=0)
        if isinstance(data, dict):
            data = [data]
        columns: list[str] = []
        for row in data:
            for key in row:
                if key not in columns:
                    columns.append(key)
        rows = [tuple(row.get(c) for c in columns) for row in data]
        return ExecutionResult(columns=columns, rows=rows, rowcount=len(rows))

    def table_columns(self, raw: MockConnection, table: str) -> list[str] | None:
        return self.columns.get(table)

    def tables(self, raw: MockConnection) -> list[str]:
        return sorted(self.columns)

    def reset(self) -> None:
        """Forget recorded statements."""
        with self._lock:
            self.sqls.clear()


__all__ = ["MockDriver", "MockConnection"]
