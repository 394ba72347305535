"""Tests for structured logging helpers."""

from __future__ import annotations

import logging

import pytest
import structlog
from structlog.testing import capture_logs

from sqlspine import connect
from sqlspine.core.errors import QueryError
from sqlspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


class TestContextBinding:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_and_unbind(self):
        bind_context(table="items", caller_id=7)
        assert structlog.contextvars.get_contextvars() == {"table": "items", "caller_id": 7}
        unbind_context("table")
        assert structlog.contextvars.get_contextvars() == {"caller_id": 7}

    def test_log_context_is_scoped(self):
        bind_context(service_run="r1")
        with LogContext(migration=3, direction="up") as ctx:
            assert isinstance(ctx, LogContext)
            assert structlog.contextvars.get_contextvars()["migration"] == 3
        assert structlog.contextvars.get_contextvars() == {"service_run": "r1"}

    def test_clear(self):
        bind_context(a=1)
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}


class TestLoggerOutput:
    def test_events_are_structured(self):
        logger = get_logger("sqlspine.test")
        with capture_logs() as logs:
            logger.info("pool.connection_created", pool_size=1)
        assert logs == [{"event": "pool.connection_created", "pool_size": 1, "log_level": "info"}]

    def test_statements_logged_when_enabled(self):
        db = connect("mock://", log_sql=True)
        with capture_logs() as logs:
            db.run("SELECT 1")
        assert [e["event"] for e in logs if e.get("sql") == "SELECT 1"] == ["sql.execute"]

    def test_statements_quiet_by_default(self):
        db = connect("mock://", log_sql=False)
        with capture_logs() as logs:
            db.run("SELECT 1")
        assert not any(e["event"] == "sql.execute" for e in logs)

    def test_errors_carry_sql(self, sqlite_db):
        with capture_logs() as logs, pytest.raises(QueryError):
            sqlite_db.run("SELECT * FROM missing")
        assert logs[-1]["event"] == "sql.error"
        assert logs[-1]["sql"] == "SELECT * FROM missing"


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_renderer(self):
        configure_logging(level="DEBUG", json_format=True, service="billing")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[0], structlog.processors.TimeStamper)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_without_timestamp(self):
        configure_logging(json_format=False, add_timestamp=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    def test_level_filters_debug(self):
        configure_logging(level="WARNING", json_format=True)
        wrapper = structlog.get_config()["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(logging.WARNING)
