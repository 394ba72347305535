"""Tests for the Dialect abstraction layer."""

from __future__ import annotations

import pytest

from sqlspine.core.dialect import (
    DB2Dialect,
    Dialect,
    MySQLDialect,
    OracleDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    StandardDialect,
    get_dialect,
    register_dialect,
)
from sqlspine.core.errors import InvalidConfigError, UnsupportedOperationError


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["generic", "sqlite", "postgresql", "db2", "mysql", "oracle"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


# =========================================================================
# Protocol conformance
# =========================================================================


class TestProtocol:
    def test_isinstance(self, dialect: Dialect) -> None:
        assert isinstance(dialect, Dialect)

    def test_union_always_allowed(self, dialect: Dialect) -> None:
        dialect.check_compound("union", False)
        dialect.check_compound("union", True)

    def test_string_escaping(self, dialect: Dialect) -> None:
        assert dialect.literal_string("it's") in ("'it''s'",)


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    def test_aliases(self) -> None:
        assert isinstance(get_dialect("postgres"), PostgreSQLDialect)
        assert isinstance(get_dialect("SQLite"), SQLiteDialect)

    def test_passthrough(self) -> None:
        d = MySQLDialect()
        assert get_dialect(d) is d

    def test_unknown(self) -> None:
        with pytest.raises(InvalidConfigError, match="Unknown dialect"):
            get_dialect("cobol")

    def test_register(self) -> None:
        class CustomDialect(StandardDialect):
            name = "custom"

        register_dialect("Custom", CustomDialect())
        assert get_dialect("custom").name == "custom"


# =========================================================================
# Capabilities
# =========================================================================


class TestCompounds:
    @pytest.mark.parametrize("kind", ["intersect", "except"])
    def test_mysql_rejects(self, kind: str) -> None:
        with pytest.raises(UnsupportedOperationError):
            get_dialect("mysql").check_compound(kind, False)

    def test_sqlite_rejects_all_variants(self) -> None:
        sqlite = get_dialect("sqlite")
        sqlite.check_compound("except", False)
        with pytest.raises(UnsupportedOperationError, match="EXCEPT ALL"):
            sqlite.check_compound("except", True)

    def test_oracle_minus(self) -> None:
        assert OracleDialect().compound_keyword("except") == "MINUS"
        assert OracleDialect().compound_keyword("union") == "UNION"


class TestLimits:
    @pytest.mark.parametrize(
        "name, limit, offset, sql",
        [
            ("generic", 10, None, " LIMIT 10"),
            ("generic", 10, 5, " LIMIT 10 OFFSET 5"),
            ("generic", None, None, ""),
            ("sqlite", None, 5, " LIMIT -1 OFFSET 5"),
            ("mysql", None, 5, " LIMIT 18446744073709551615 OFFSET 5"),
            ("oracle", 10, 5, " OFFSET 5 ROWS FETCH NEXT 10 ROWS ONLY"),
            ("db2", 3, None, " FETCH NEXT 3 ROWS ONLY"),
        ],
    )
    def test_limit_clause(self, name, limit, offset, sql) -> None:
        assert get_dialect(name).limit_clause(limit, offset) == sql


class TestLocks:
    def test_for_update(self) -> None:
        assert get_dialect("postgresql").lock_clause("update") == " FOR UPDATE"
        assert get_dialect("postgresql").lock_clause("share") == " FOR SHARE"

    def test_sqlite_omits_locks(self) -> None:
        assert get_dialect("sqlite").lock_clause("update") == ""

    def test_mysql_share(self) -> None:
        assert get_dialect("mysql").lock_clause("share") == " LOCK IN SHARE MODE"

    def test_unknown_style(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            get_dialect("generic").lock_clause("exclusive")


class TestProcedures:
    def test_call_sql(self) -> None:
        assert get_dialect("mysql").call_procedure_sql("p", ["1", "'a'"]) == "CALL p(1, 'a')"

    def test_sqlite_has_no_procedures(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            get_dialect("sqlite").call_procedure_sql("p", [])


class TestColumnTypes:
    @pytest.mark.parametrize(
        "name, tag, sql",
        [
            ("generic", "string", "varchar(255)"),
            ("generic", int, "integer"),
            ("sqlite", float, "real"),
            ("postgresql", "blob", "bytea"),
            ("oracle", "string", "varchar2(255)"),
            ("db2", "boolean", "smallint"),
            ("generic", "varchar(20)", "varchar(20)"),
        ],
    )
    def test_column_type(self, name, tag, sql) -> None:
        assert get_dialect(name).column_type(tag) == sql

    def test_unknown_python_type(self) -> None:
        with pytest.raises(InvalidConfigError):
            get_dialect("generic").column_type(dict)

    @pytest.mark.parametrize(
        "cls, sql",
        [
            (SQLiteDialect, "integer PRIMARY KEY AUTOINCREMENT"),
            (PostgreSQLDialect, "serial PRIMARY KEY"),
            (MySQLDialect, "integer PRIMARY KEY AUTO_INCREMENT"),
            (DB2Dialect, "integer GENERATED ALWAYS AS IDENTITY PRIMARY KEY"),
        ],
    )
    def test_auto_increment(self, cls, sql) -> None:
        assert cls().auto_increment() == sql
