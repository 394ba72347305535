"""sqlspine core: the dataset toolkit and everything beneath it.

Manifesto:
    Build queries as immutable values, render them deterministically for
    the target dialect, and run them through one bounded, reentrant
    connection pool. Every layer takes its Database explicitly.

Architecture::

    Layer 1 -- Types & Errors
        errors.py        Structured error hierarchy (SqlSpineError, TransientError)
        protocols.py     Queryable, ConnectionFactory

    Layer 2 -- SQL Text
        expressions.py   Immutable expression tree + operator DSL
        dialect.py       Capabilities and literal formats (5 backends)
        literal.py       Literalizer: values and expressions → SQL

    Layer 3 -- Connectivity
        connection.py    URL → ConnectionOptions
        adapters/        Driver ABC, registry, SQLite + mock drivers
        pool.py          Threaded and single-threaded pools
        database.py      Database, transactions, DDL helpers

    Layer 4 -- Query Building
        dataset.py       Dataset (select/insert/update/delete, compounds, joins)
        sproc.py         Stored procedure datasets
        worker.py        Queue-fed background worker

    Layer 5 -- Schema & Objects
        schema.py        Table / ALTER TABLE generators
        migrations/      Migration + Migrator
        model/           Model, hooks, plugins, associations

    Cross-Cutting
        logging.py       structlog configuration
        settings.py      SQLSPINE_* environment settings

Tags:
    sqlspine, core, package-overview

Doc-Types:
    package-overview, module-index
"""

from sqlspine.core.database import Database, Transaction, TransactionState, connect
from sqlspine.core.dataset import Dataset
from sqlspine.core.dialect import Dialect, get_dialect, register_dialect
from sqlspine.core.errors import (
    ColumnCountError,
    DatabaseConnectionError,
    DatabaseError,
    InvalidFilterError,
    InvalidOperationError,
    MigrationConfigError,
    PoolTimeoutError,
    Rollback,
    SqlSpineError,
    SQLSyntaxError,
    UnsupportedOperationError,
)
from sqlspine.core.expressions import (
    STAR,
    col,
    func,
    lit,
    raw,
    sql_and,
    sql_not,
    sql_or,
)
from sqlspine.core.logging import configure_logging, get_logger
from sqlspine.core.settings import SqlSpineSettings, get_settings
from sqlspine.core.worker import Worker

__all__ = [
    # Database
    "connect",
    "Database",
    "Transaction",
    "TransactionState",
    "Dataset",
    "Worker",
    # Dialects
    "Dialect",
    "get_dialect",
    "register_dialect",
    # Expressions
    "col",
    "lit",
    "raw",
    "func",
    "STAR",
    "sql_and",
    "sql_or",
    "sql_not",
    # Errors
    "SqlSpineError",
    "DatabaseConnectionError",
    "PoolTimeoutError",
    "DatabaseError",
    "SQLSyntaxError",
    "UnsupportedOperationError",
    "ColumnCountError",
    "InvalidOperationError",
    "InvalidFilterError",
    "MigrationConfigError",
    "Rollback",
    # Ambient
    "configure_logging",
    "get_logger",
    "SqlSpineSettings",
    "get_settings",
]
