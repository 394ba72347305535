"""SQLite driver."""

from __future__ import annotations

import datetime as dt
import itertools
import sqlite3
from decimal import Decimal
from typing import Any

from sqlspine.core.errors import DatabaseConnectionError

from .base import Driver, ExecutionResult, translate_error

_memory_ids = itertools.count(1)


def _decode_text(value: bytes) -> str:
    return value.decode("utf-8")


# Converters for the declared column types produced by the schema layer.
# Registered process-wide but only consulted with detect_types enabled.
sqlite3.register_converter("date", lambda v: dt.date.fromisoformat(_decode_text(v)))
sqlite3.register_converter("timestamp", lambda v: dt.datetime.fromisoformat(_decode_text(v)))
sqlite3.register_converter("datetime", lambda v: dt.datetime.fromisoformat(_decode_text(v)))
sqlite3.register_converter("time", lambda v: dt.time.fromisoformat(_decode_text(v)))
sqlite3.register_converter("boolean", lambda v: _decode_text(v) not in ("0", ""))
sqlite3.register_converter("numeric", lambda v: Decimal(_decode_text(v)))


class SQLiteDriver(Driver):
    """
    SQLite driver on the stdlib ``sqlite3`` module.

    Suitable for:
    - Development and testing
    - Embedded, single-process applications

    Connections run in autocommit mode, transactions are bracketed with
    explicit ``BEGIN``/``COMMIT``. An in-memory database (``sqlite://``)
    is a named shared-cache database, served by a single pooled connection
    so concurrent callers wait on the pool instead of failing on table locks.
    """

    scheme = "sqlite"
    default_dialect = "sqlite"

    def __init__(self, options, *, timeout: float = 5.0):
        super().__init__(options)
        self._timeout = float(options.extra.get("timeout", timeout))
        if options.database in (None, "", ":memory:"):
            self._target = f"file:sqlspine_memory_{next(_memory_ids)}?mode=memory&cache=shared"
            self._uri = True
        else:
            self._target = options.database
            self._uri = options.database.startswith("file:")

    @property
    def is_memory(self) -> bool:
        return self._uri and "mode=memory" in self._target

    def pool_size(self, requested: int) -> int:
        # Shared-cache memory databases raise SQLITE_LOCKED instead of waiting on a busy timeout.
        return 1 if self.is_memory else requested

    def connect(self) -> sqlite3.Connection:
        """Connect to the SQLite database."""
        try:
            conn = sqlite3.connect(
                self._target,
                timeout=self._timeout,
                check_same_thread=False,
                isolation_level=None,
                detect_types=sqlite3.PARSE_DECLTYPES,
                uri=self._uri,
            )
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ) from e
        return conn

    def close(self, raw: sqlite3.Connection) -> None:
        """Close a SQLite connection."""
        try:
            raw.close()
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Failed to close SQLite connection: {e}", cause=e) from e

    def execute(self, raw: sqlite3.Connection, sql: str) -> ExecutionResult:
        try:
            cursor = raw.execute(sql)
            columns = [desc[0] for desc in cursor.description] if cursor.description else []
            rows = cursor.fetchall() if cursor.description else []
            return ExecutionResult(
                columns=columns,
                rows=rows,
                rowcount=cursor.rowcount,
                lastrowid=cursor.lastrowid,
            )
        except sqlite3.Error as e:
            raise translate_error(e, sql) from e

    def table_columns(self, raw: sqlite3.Connection, table: str) -> list[str] | None:
        result = self.execute(raw, f"PRAGMA table_info({self.dialect.quote_identifier(table)})")
        names = [row[1] for row in result.rows]
        return names or None

    def tables(self, raw: sqlite3.Connection) -> list[str]:
        result = self.execute(
            raw,
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name",
        )
        return [row[0] for row in result.rows]


__all__ = [
    "SQLiteDriver",
]
