"""Driver base class.

Manifesto:
    The core never talks to a database engine directly. Everything it
    needs (open a session, run one SQL string, bracket a transaction,
    close the session) goes through this interface, so the pool, the
    dataset layer and the migrator work unchanged on any engine with a
    driver.

Features:
    - Abstract ``connect()``, ``close()``, ``execute()``
    - Default ``BEGIN``/``COMMIT``/``ROLLBACK`` and savepoint statements
    - Optional metadata hooks: ``table_columns()``, ``tables()``
    - ``translate_error()`` maps DB-API exceptions onto the sqlspine taxonomy

Tags:
    sqlspine, database, abstract-base, adapter-pattern, driver

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from sqlspine.core.connection import ConnectionOptions
from sqlspine.core.dialect import Dialect, get_dialect
from sqlspine.core.errors import (
    DatabaseError,
    IntegrityError,
    QueryError,
    SqlSpineError,
    SQLSyntaxError,
)


@dataclass
class ExecutionResult:
    """What a driver hands back for one statement."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: Any = None

    def records(self) -> list[dict[str, Any]]:
        """Rows as dicts, keys in column order."""
        return [dict(zip(self.columns, row, strict=False)) for row in self.rows]


class Driver(ABC):
    """
    Abstract base class for database drivers.

    One instance serves one Database; ``connect()`` is called by the pool
    every time it needs a new physical connection.
    """

    scheme: ClassVar[str] = ""
    default_dialect: ClassVar[str] = "generic"

    def __init__(self, options: ConnectionOptions):
        self.options = options
        self._dialect: Dialect = get_dialect(options.extra.get("dialect", self.default_dialect))

    @property
    def dialect(self) -> Dialect:
        """SQL dialect this driver speaks."""
        return self._dialect

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.options!r}>"

    # -- Lifecycle -----------------------------------------------------------

    @abstractmethod
    def connect(self) -> Any:
        """Open a new physical connection (raises ``DatabaseConnectionError``)."""
        ...

    @abstractmethod
    def close(self, raw: Any) -> None:
        """Close a physical connection."""
        ...

    # -- Execution -----------------------------------------------------------

    @abstractmethod
    def execute(self, raw: Any, sql: str) -> ExecutionResult:
        """Run one fully-rendered SQL statement."""
        ...

    def begin(self, raw: Any) -> None:
        self.execute(raw, "BEGIN")

    def commit(self, raw: Any) -> None:
        self.execute(raw, "COMMIT")

    def rollback(self, raw: Any) -> None:
        self.execute(raw, "ROLLBACK")

    def savepoint(self, raw: Any, name: str) -> None:
        self.execute(raw, f"SAVEPOINT {name}")

    def release_savepoint(self, raw: Any, name: str) -> None:
        self.execute(raw, f"RELEASE SAVEPOINT {name}")

    def rollback_to_savepoint(self, raw: Any, name: str) -> None:
        self.execute(raw, f"ROLLBACK TO SAVEPOINT {name}")

    def call_procedure(self, raw: Any, name: str, sql: str) -> ExecutionResult:
        """Run a stored procedure. ``sql`` is the dialect's rendered CALL."""
        return self.execute(raw, sql)

    def pool_size(self, requested: int) -> int:
        """Number of pooled connections this driver can serve concurrently."""
        return requested

    def ping(self, raw: Any) -> None:
        self.execute(raw, "SELECT 1")

    # -- Metadata (optional) -------------------------------------------------

    def table_columns(self, raw: Any, table: str) -> list[str] | None:
        """Column names of ``table`` in order, or ``None`` when unknown."""
        return None

    def tables(self, raw: Any) -> list[str] | None:
        """Names of user tables, or ``None`` when the driver cannot tell."""
        return None


# ── Error translation ────────────────────────────────────────────────────

_DBAPI_ERRORS: dict[str, type[DatabaseError]] = {
    "IntegrityError": IntegrityError,
    "ProgrammingError": SQLSyntaxError,
}


def translate_error(exc: BaseException, sql: str | None = None) -> SqlSpineError:
    """Wrap a DB-API exception in the matching sqlspine error.

    The class is chosen by walking the exception's MRO for the standard
    DB-API names, so it works for any PEP 249 driver. The original is kept
    as ``cause``.
    """
    if isinstance(exc, SqlSpineError):
        return exc
    error_class: type[DatabaseError] = QueryError
    for klass in type(exc).__mro__:
        if klass.__name__ in _DBAPI_ERRORS:
            error_class = _DBAPI_ERRORS[klass.__name__]
            break
    if error_class is QueryError and "syntax error" in str(exc).lower():
        error_class = SQLSyntaxError
    return error_class(str(exc), cause=exc).with_context(sql=sql)


__all__ = ["Driver", "ExecutionResult", "translate_error"]
