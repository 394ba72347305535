"""Tests for sqlspine.core.errors module."""

import pytest

from sqlspine.core.errors import (
    ColumnCountError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    HookFailedError,
    InvalidConfigError,
    IrreversibleMigrationError,
    LiteralizationError,
    MigrationError,
    PoolTimeoutError,
    SqlSpineError,
    SQLSyntaxError,
    UnsupportedOperationError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.sql is None
        assert ctx.caller_id is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields."""
        ctx = ErrorContext(sql="SELECT 1", adapter="mock", metadata={"attempt": 2})
        d = ctx.to_dict()
        assert d == {"sql": "SELECT 1", "adapter": "mock", "attempt": 2}
        assert "table" not in d


class TestSqlSpineError:
    """Test the base error type."""

    def test_defaults(self):
        error = SqlSpineError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_cause_is_chained(self):
        original = RuntimeError("driver")
        error = DatabaseError("failed", cause=original)
        assert error.__cause__ is original
        assert error.to_dict()["cause"] == "driver"

    def test_with_context_is_fluent(self):
        error = SQLSyntaxError("near FROM").with_context(sql="SELEC 1", table="items", hint="typo")
        assert error.context.sql == "SELEC 1"
        assert error.context.table == "items"
        assert error.context.metadata == {"hint": "typo"}

    def test_to_dict(self):
        error = PoolTimeoutError("no connection", retry_after=1).with_context(caller_id=7)
        d = error.to_dict()
        assert d["error_type"] == "PoolTimeoutError"
        assert d["category"] == "POOL"
        assert d["retryable"] is True
        assert d["retry_after"] == 1
        assert d["context"] == {"caller_id": 7}

    def test_repr(self):
        assert repr(DatabaseError("x")) == "DatabaseError('x', category=QUERY)"


class TestSubclasses:
    """Categories and retryability of the concrete errors."""

    @pytest.mark.parametrize(
        "error, category, retryable",
        [
            (DatabaseConnectionError("x"), ErrorCategory.CONNECTION, True),
            (PoolTimeoutError("x"), ErrorCategory.POOL, True),
            (SQLSyntaxError("x"), ErrorCategory.QUERY, False),
            (UnsupportedOperationError("x"), ErrorCategory.CAPABILITY, False),
            (InvalidConfigError("k", 1), ErrorCategory.CONFIG, False),
            (IrreversibleMigrationError("x"), ErrorCategory.SCHEMA, False),
            (HookFailedError("x"), ErrorCategory.VALIDATION, False),
        ],
    )
    def test_category(self, error, category, retryable):
        assert error.category == category
        assert error.retryable is retryable

    def test_column_count(self):
        error = ColumnCountError("items", 3, 2)
        assert error.context.table == "items"
        assert "3 columns" in str(error)
        assert (error.expected, error.given) == (3, 2)

    def test_literalization(self):
        error = LiteralizationError(object)
        assert "SQL literal" in error.message

    def test_migration_hierarchy(self):
        assert issubclass(IrreversibleMigrationError, MigrationError)

    def test_invalid_config_message(self):
        assert str(InvalidConfigError("max_connections", 0)) == (
            "Invalid configuration for max_connections: 0"
        )


class TestHelpers:
    def test_is_retryable(self):
        assert is_retryable(PoolTimeoutError("x")) is True
        assert is_retryable(DatabaseError("x")) is False
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(ValueError()) is False

    def test_categorize(self):
        assert categorize_error(SQLSyntaxError("x")) == ErrorCategory.QUERY
        assert categorize_error(OSError()) == ErrorCategory.CONNECTION
        assert categorize_error(ValueError()) == ErrorCategory.VALIDATION
        assert categorize_error(KeyError()) == ErrorCategory.UNKNOWN
