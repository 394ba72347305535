"""
Structured error types for sqlspine.

Every failure the toolkit raises carries a category, a retryable flag, a
structured context (SQL text, table, adapter, caller) and the chained
driver exception when one exists.

Manifesto:
    - **Typed Error Hierarchy:** Connection, pool, query, capability and
      dataset failures are distinct types
    - **No Hidden Retries:** ``retryable`` is metadata for the caller, the
      core never retries on its own
    - **Rich Context:** Errors are enriched with the SQL and adapter that
      produced them
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       SqlSpineError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError          DatabaseError       DatasetError       │
        │  (retryable=True)        (QUERY)             (DATASET)          │
        │       │                       │                   │              │
        │  DatabaseConnectionError  QueryError         ColumnCountError   │
        │  PoolTimeoutError         SQLSyntaxError     InvalidOperation   │
        │                           IntegrityError     InvalidFilter      │
        │                                              Literalization     │
        │                                                                  │
        │  ConfigError             MigrationError      UnsupportedOp      │
        │  (CONFIG)                (SCHEMA)            (CAPABILITY)       │
        │       │                       │                                  │
        │  MigrationConfigError    IrreversibleMigration                  │
        │  AdapterNotFoundError                                            │
        │  InvalidConfigError      ValidationError    HookFailedError     │
        └─────────────────────────────────────────────────────────────────┘

        Rollback  (control flow, not an error: aborts a transaction quietly)

Examples:
    >>> err = PoolTimeoutError("no connection available", retry_after=1)
    >>> err.retryable
    True
    >>> err.with_context(caller_id=42).context.caller_id
    42

Tags:
    error-handling, exception-hierarchy, error-context, sqlspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    CONNECTION = "CONNECTION"
    POOL = "POOL"
    QUERY = "QUERY"
    CAPABILITY = "CAPABILITY"
    DATASET = "DATASET"
    SCHEMA = "SCHEMA"
    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-``None`` fields are serialized by :meth:`to_dict`, extra
    key/value pairs go to ``metadata``.

    Attributes:
        sql: SQL text that was being executed or rendered
        table: Table or view the operation targeted
        adapter: Adapter scheme (``sqlite``, ``mock``, ...)
        caller_id: Pool caller identity that held the connection
        metadata: Additional key-value pairs
    """

    sql: str | None = None
    table: str | None = None
    adapter: str | None = None
    caller_id: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["sql", "table", "adapter", "caller_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SqlSpineError(Exception):
    """
    Base exception for all sqlspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = SqlSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SqlSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("bad column").with_context(sql=sql, table="items")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS
# =============================================================================


class TransientError(SqlSpineError):
    """
    Temporary condition that may clear up on its own.

    Marked retryable for the caller's benefit. The pool and the dataset
    layer still fail the immediate call.
    """

    default_category = ErrorCategory.CONNECTION
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """Opening or closing a physical connection failed."""

    default_category = ErrorCategory.CONNECTION


class PoolTimeoutError(TransientError):
    """No connection became available within the pool timeout."""

    default_category = ErrorCategory.POOL


# =============================================================================
# QUERY ERRORS
# =============================================================================


class DatabaseError(SqlSpineError):
    """Error reported by the driver while running SQL."""

    default_category = ErrorCategory.QUERY
    default_retryable = False


class QueryError(DatabaseError):
    """SQL statement failed."""

    pass


class SQLSyntaxError(QueryError):
    """SQL statement was rejected by the database as malformed."""

    pass


class IntegrityError(DatabaseError):
    """Database integrity constraint violation."""

    pass


# =============================================================================
# CAPABILITY / DATASET ERRORS
# =============================================================================


class UnsupportedOperationError(SqlSpineError):
    """The adapter's dialect cannot express the requested operation.

    Raised while building or rendering, before any SQL is sent.
    """

    default_category = ErrorCategory.CAPABILITY
    default_retryable = False


class DatasetError(SqlSpineError):
    """Invalid use of the dataset API."""

    default_category = ErrorCategory.DATASET
    default_retryable = False


class ColumnCountError(DatasetError):
    """Positional insert values do not match the table's column count."""

    def __init__(self, table: str, expected: int, given: int):
        self.table = table
        self.expected = expected
        self.given = given
        super().__init__(
            f"Table {table} has {expected} columns but {given} values were given",
            context=ErrorContext(table=table),
        )


class InvalidOperationError(DatasetError):
    """Operation is not valid for this dataset (e.g. updating a join)."""

    pass


class InvalidFilterError(DatasetError):
    """Filter argument cannot be turned into a condition."""

    pass


class LiteralizationError(DatasetError):
    """Value cannot be expressed as an SQL literal."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Can't express {value!r} as a SQL literal")


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SqlSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class AdapterNotFoundError(ConfigError):
    """No driver is registered for the requested scheme."""

    def __init__(self, scheme: str):
        self.scheme = scheme
        super().__init__(f"Could not load {scheme} adapter")


class MigrationConfigError(ConfigError):
    """A migration is declared inconsistently (e.g. mixes change with up/down)."""

    pass


# =============================================================================
# MIGRATION ERRORS
# =============================================================================


class MigrationError(SqlSpineError):
    """Migration could not be applied or reverted."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class IrreversibleMigrationError(MigrationError):
    """A ``change`` migration recorded an operation with no known inverse."""

    pass


# =============================================================================
# MODEL ERRORS
# =============================================================================


class ValidationError(SqlSpineError):
    """Model values failed validation. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class HookFailedError(ValidationError):
    """A ``before_*`` lifecycle hook stopped the action."""

    pass


# =============================================================================
# CONTROL FLOW
# =============================================================================


class Rollback(Exception):
    """Raise inside ``Database.transaction()`` to roll back without an error.

    The transaction block catches it. Nothing propagates to the caller.
    """


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SqlSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, BrokenPipeError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SqlSpineError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.CONNECTION
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SqlSpineError",
    "TransientError",
    "DatabaseConnectionError",
    "PoolTimeoutError",
    "DatabaseError",
    "QueryError",
    "SQLSyntaxError",
    "IntegrityError",
    "UnsupportedOperationError",
    "DatasetError",
    "ColumnCountError",
    "InvalidOperationError",
    "InvalidFilterError",
    "LiteralizationError",
    "ConfigError",
    "InvalidConfigError",
    "AdapterNotFoundError",
    "MigrationConfigError",
    "MigrationError",
    "IrreversibleMigrationError",
    "ValidationError",
    "HookFailedError",
    "Rollback",
    "is_retryable",
    "categorize_error",
]
