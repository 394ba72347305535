"""SQL dialect capabilities and literal formats.

A dialect describes what a database backend can express and how it spells
the pieces the renderer cannot treat generically: identifier quoting,
string/boolean/date literal formats, compound keywords, row limiting,
row locking, stored-procedure calls and column types. Datasets consult
the dialect of their Database while rendering, and capability checks
(``supports_intersect_except`` and friends) are made *before* any SQL
is sent.

Manifesto:
    The same dataset must render correctly for SQLite, PostgreSQL, MySQL,
    Oracle and DB2. Without a dialect layer, backend quirks leak into the
    query builder as scattered ``if adapter == ...`` checks.

    - **One interface:** Dialect protocol for every backend difference
    - **Zero coupling:** Dialects never import database drivers
    - **Fail early:** Unsupported compounds raise while building
    - **Testable:** ``mock://?dialect=mysql`` renders as MySQL without MySQL

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                         StandardDialect                           │
    │   '...' strings   DATE '...'   TRUE/FALSE   LIMIT n OFFSET m      │
    └──────────────────────────────────────────────────────────────────┘
          │            │              │              │            │
          ▼            ▼              ▼              ▼            ▼
    ┌──────────┐ ┌────────────┐ ┌───────────┐ ┌──────────┐ ┌──────────┐
    │ SQLite   │ │ PostgreSQL │ │  MySQL    │ │  Oracle  │ │   DB2    │
    │ 1/0      │ │ ILIKE      │ │ `ident`   │ │ MINUS    │ │ FETCH    │
    │ no INTER-│ │ DISTINCT ON│ │ \\ escape │ │ FETCH    │ │ NEXT     │
    │ SECT ALL │ │ FOR SHARE  │ │ no EXCEPT │ │ no AS    │ │          │
    └──────────┘ └────────────┘ └───────────┘ └──────────┘ └──────────┘

Features:
    - **literal_string():** The single escaping choke point for text
    - **check_compound():** Raises ``UnsupportedOperationError`` early
    - **limit_clause():** ``LIMIT/OFFSET`` or ``OFFSET ... FETCH NEXT``
    - **get_dialect() / register_dialect():** Name-keyed registry

Examples:
    >>> from sqlspine.core.dialect import get_dialect
    >>> get_dialect("sqlite").literal_string("it's")
    "'it''s'"
    >>> get_dialect("mysql").supports_intersect_except
    False
    >>> get_dialect("oracle").compound_keyword("except")
    'MINUS'

Guardrails:
    ❌ DON'T: Concatenate quotes around user text anywhere else
    ✅ DO: Route every str through ``literal_string``

Tags:
    dialect, sql, capabilities, portability, literal, sqlspine

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Protocol, runtime_checkable

from sqlspine.core.errors import InvalidConfigError, UnsupportedOperationError


@runtime_checkable
class Dialect(Protocol):
    """Dialect contract used by the literalizer and the dataset renderer."""

    name: str
    supports_intersect_except: bool
    supports_intersect_except_all: bool
    supports_savepoints: bool
    supports_stored_procedures: bool
    supports_distinct_on: bool

    def quote_identifier(self, name: str) -> str:
        ...

    def literal_string(self, value: str) -> str:
        ...

    def literal_bytes(self, value: bytes) -> str:
        ...

    def literal_boolean(self, value: bool) -> str:
        ...

    def literal_date(self, value: dt.date) -> str:
        ...

    def literal_datetime(self, value: dt.datetime) -> str:
        ...

    def literal_time(self, value: dt.time) -> str:
        ...

    def compound_keyword(self, kind: str) -> str:
        ...

    def check_compound(self, kind: str, all: bool) -> None:
        ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        ...

    def lock_clause(self, mode: str) -> str:
        ...

    def ilike(self, left: str, right: str, negate: bool) -> str:
        ...

    def call_procedure_sql(self, name: str, args: list[str]) -> str:
        ...

    def column_type(self, type_tag: Any) -> str:
        ...

    def auto_increment(self) -> str:
        ...


# =========================================================================
# Standard SQL
# =========================================================================

_STANDARD_TYPES: dict[str, str] = {
    "integer": "integer",
    "bigint": "bigint",
    "string": "varchar(255)",
    "text": "text",
    "float": "double precision",
    "decimal": "numeric",
    "boolean": "boolean",
    "date": "date",
    "datetime": "timestamp",
    "time": "time",
    "blob": "blob",
}

_PYTHON_TYPE_TAGS: dict[type, str] = {
    int: "integer",
    str: "string",
    float: "float",
    bool: "boolean",
    bytes: "blob",
    dt.datetime: "datetime",
    dt.date: "date",
    dt.time: "time",
}


class StandardDialect:
    """ANSI-flavoured defaults. Backends override only what differs."""

    name = "generic"
    supports_intersect_except = True
    supports_intersect_except_all = True
    supports_savepoints = True
    supports_stored_procedures = True
    supports_distinct_on = False
    supports_native_ilike = False
    supports_for_update = True
    backslash_escapes = False
    identifier_quote = '"'
    table_alias_keyword = " AS "
    column_types: dict[str, str] = _STANDARD_TYPES

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    # -- Identifiers -------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        q = self.identifier_quote
        return f"{q}{name.replace(q, q * 2)}{q}"

    # -- Literals ------------------------------------------------------------

    def literal_string(self, value: str) -> str:
        escaped = value.replace("\\", "\\\\") if self.backslash_escapes else value
        return "'" + escaped.replace("'", "''") + "'"

    def literal_bytes(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    def literal_boolean(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def literal_date(self, value: dt.date) -> str:
        return f"DATE {self.literal_string(value.isoformat())}"

    def literal_datetime(self, value: dt.datetime) -> str:
        return f"TIMESTAMP {self.literal_string(value.isoformat(' '))}"

    def literal_time(self, value: dt.time) -> str:
        return f"TIME {self.literal_string(value.isoformat())}"

    # -- Compounds -----------------------------------------------------------

    def compound_keyword(self, kind: str) -> str:
        return kind.upper()

    def check_compound(self, kind: str, all: bool) -> None:
        """Raise ``UnsupportedOperationError`` for compounds the backend lacks."""
        if kind == "union":
            return
        if not self.supports_intersect_except:
            raise UnsupportedOperationError(
                f"{kind.upper()} not supported by the {self.name} dialect"
            )
        if all and not self.supports_intersect_except_all:
            raise UnsupportedOperationError(
                f"{kind.upper()} ALL not supported by the {self.name} dialect"
            )

    # -- Clauses -------------------------------------------------------------

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        sql = ""
        if limit is not None:
            sql += f" LIMIT {limit}"
        if offset:
            sql += f" OFFSET {offset}"
        return sql

    def lock_clause(self, mode: str) -> str:
        if not self.supports_for_update:
            return ""
        if mode == "update":
            return " FOR UPDATE"
        if mode == "share":
            return " FOR SHARE"
        raise UnsupportedOperationError(f"lock style {mode!r} not supported by {self.name}")

    def ilike(self, left: str, right: str, negate: bool) -> str:
        op = "NOT LIKE" if negate else "LIKE"
        return f"(UPPER({left}) {op} UPPER({right}))"

    def call_procedure_sql(self, name: str, args: list[str]) -> str:
        if not self.supports_stored_procedures:
            raise UnsupportedOperationError(
                f"stored procedures not supported by the {self.name} dialect"
            )
        return f"CALL {name}({', '.join(args)})"

    # -- DDL -----------------------------------------------------------------

    def column_type(self, type_tag: Any) -> str:
        """Map a type tag (``"string"``, ``int``, ``"varchar(20)"``) to SQL."""
        if isinstance(type_tag, type):
            if type_tag not in _PYTHON_TYPE_TAGS:
                raise InvalidConfigError("type", type_tag, f"No SQL type for {type_tag!r}")
            type_tag = _PYTHON_TYPE_TAGS[type_tag]
        return self.column_types.get(type_tag.lower(), type_tag)

    def auto_increment(self) -> str:
        return "integer PRIMARY KEY AUTOINCREMENT"


# =========================================================================
# Backends
# =========================================================================


class SQLiteDialect(StandardDialect):
    """SQLite: plain-text dates, 1/0 booleans, no INTERSECT/EXCEPT ALL."""

    name = "sqlite"
    supports_intersect_except_all = False
    supports_stored_procedures = False
    # SQLite locks the whole database file, row locks are omitted.
    supports_for_update = False
    column_types = {**_STANDARD_TYPES, "float": "real"}

    def literal_boolean(self, value: bool) -> str:
        return "1" if value else "0"

    def literal_date(self, value: dt.date) -> str:
        return self.literal_string(value.isoformat())

    def literal_datetime(self, value: dt.datetime) -> str:
        return self.literal_string(value.isoformat(" "))

    def literal_time(self, value: dt.time) -> str:
        return self.literal_string(value.isoformat())

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        # SQLite needs a LIMIT before it accepts OFFSET.
        if limit is None and offset:
            return f" LIMIT -1 OFFSET {offset}"
        return super().limit_clause(limit, offset)


class PostgreSQLDialect(StandardDialect):
    """PostgreSQL: native ILIKE, DISTINCT ON, bytea hex literals."""

    name = "postgresql"
    supports_distinct_on = True
    supports_native_ilike = True
    column_types = {**_STANDARD_TYPES, "blob": "bytea"}

    def literal_bytes(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"

    def ilike(self, left: str, right: str, negate: bool) -> str:
        op = "NOT ILIKE" if negate else "ILIKE"
        return f"({left} {op} {right})"

    def auto_increment(self) -> str:
        return "serial PRIMARY KEY"


class MySQLDialect(StandardDialect):
    """MySQL: backtick identifiers, backslash escapes, no INTERSECT/EXCEPT."""

    name = "mysql"
    supports_intersect_except = False
    supports_intersect_except_all = False
    backslash_escapes = True
    identifier_quote = "`"
    column_types = {**_STANDARD_TYPES, "datetime": "datetime", "float": "double"}

    def lock_clause(self, mode: str) -> str:
        if mode == "share":
            return " LOCK IN SHARE MODE"
        return super().lock_clause(mode)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        if limit is None and offset:
            return f" LIMIT 18446744073709551615 OFFSET {offset}"
        return super().limit_clause(limit, offset)

    def auto_increment(self) -> str:
        return "integer PRIMARY KEY AUTO_INCREMENT"


class _FetchFirstDialect(StandardDialect):
    """Backends that limit rows with ``OFFSET ... FETCH NEXT``."""

    supports_intersect_except_all = False

    def literal_boolean(self, value: bool) -> str:
        return "1" if value else "0"

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        sql = ""
        if offset:
            sql += f" OFFSET {offset} ROWS"
        if limit is not None:
            sql += f" FETCH NEXT {limit} ROWS ONLY"
        return sql

    def auto_increment(self) -> str:
        return "integer GENERATED ALWAYS AS IDENTITY PRIMARY KEY"


class OracleDialect(_FetchFirstDialect):
    """Oracle: MINUS for EXCEPT, no AS before table aliases."""

    name = "oracle"
    table_alias_keyword = " "
    column_types = {
        **_STANDARD_TYPES,
        "string": "varchar2(255)",
        "text": "clob",
        "integer": "number(10)",
        "boolean": "number(1)",
    }

    def compound_keyword(self, kind: str) -> str:
        return "MINUS" if kind == "except" else kind.upper()


class DB2Dialect(_FetchFirstDialect):
    """IBM DB2."""

    name = "db2"
    supports_intersect_except_all = True
    column_types = {**_STANDARD_TYPES, "text": "clob", "boolean": "smallint"}


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "generic": StandardDialect(),
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
    "db2": DB2Dialect(),
}


def get_dialect(name: str | Dialect) -> Dialect:
    """Get a dialect by backend name.

    Args:
        name: One of ``'generic'``, ``'sqlite'``, ``'postgresql'``,
              ``'postgres'``, ``'mysql'``, ``'oracle'``, ``'db2'``, or an
              already-built dialect, which is returned unchanged.

    Raises:
        InvalidConfigError: If ``name`` is not recognised.
    """
    if not isinstance(name, str):
        return name
    key = name.lower()
    if key not in _DIALECTS:
        raise InvalidConfigError(
            "dialect",
            name,
            f"Unknown dialect '{name}'. Supported: {sorted(set(_DIALECTS) - {'postgres'})}",
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    # Protocol
    "Dialect",
    # Implementations
    "StandardDialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "OracleDialect",
    "DB2Dialect",
    # Factory
    "get_dialect",
    "register_dialect",
]
