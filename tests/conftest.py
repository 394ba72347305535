"""
Shared pytest fixtures and configuration for sqlspine tests.

This module provides:
- Environment isolation (``SQLSPINE_*`` variables and the settings cache)
- ``mock_db``: a Database on the recording mock driver
- ``dialect_db``: the mock driver rendering as each supported dialect
- ``sqlite_db``: a private in-memory SQLite Database for round trips

Usage:
    def test_render(mock_db):
        assert mock_db["items"].select_sql() == "SELECT * FROM items"
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from sqlspine import Database, connect
from sqlspine.core.settings import get_settings

DIALECTS = ["generic", "sqlite", "postgresql", "mysql", "oracle", "db2"]


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests: sqlite-backed tests are integration, the rest unit."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if "sqlite_db" in getattr(item, "fixturenames", ()):
            item.add_marker(pytest.mark.integration)
        elif not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Strip ``SQLSPINE_*`` variables and reset the cached settings."""
    for key in list(os.environ):
        if key.startswith("SQLSPINE_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Databases
# =============================================================================


@pytest.fixture
def mock_db() -> Generator[Database, None, None]:
    db = connect("mock://")
    yield db
    db.disconnect()


@pytest.fixture(params=DIALECTS)
def dialect_db(request: pytest.FixtureRequest) -> Generator[Database, None, None]:
    """Parametric fixture: the mock driver rendering as every dialect."""
    db = connect(f"mock://?dialect={request.param}")
    yield db
    db.disconnect()


@pytest.fixture
def sqlite_db() -> Generator[Database, None, None]:
    db = connect("sqlite://")
    yield db
    db.disconnect()


@pytest.fixture
def sqlite_file_db(tmp_path: Path) -> Generator[Database, None, None]:
    db = connect(f"sqlite:///{tmp_path / 'test.db'}")
    yield db
    db.disconnect()


@pytest.fixture
def items_db(sqlite_db: Database) -> Database:
    """SQLite Database with a populated ``items`` table."""
    sqlite_db.create_table(
        "items",
        lambda t: (
            t.primary_key("id"),
            t.column("name", "string", null=False),
            t.column("price", "integer"),
            t.column("category", "string"),
        ),
    )
    items = sqlite_db["items"]
    for name, price, category in [
        ("apple", 3, "fruit"),
        ("banana", 1, "fruit"),
        ("carrot", 2, "vegetable"),
        ("durian", 10, "fruit"),
    ]:
        items.insert(name=name, price=price, category=category)
    return sqlite_db
