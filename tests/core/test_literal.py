"""Tests for the Literalizer: value literals, identifiers and placeholders."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from sqlspine.core.dialect import get_dialect
from sqlspine.core.errors import InvalidOperationError, LiteralizationError
from sqlspine.core.expressions import col
from sqlspine.core.literal import Literalizer


@pytest.fixture
def lz() -> Literalizer:
    return Literalizer(get_dialect("generic"))


class TestScalars:
    @pytest.mark.parametrize(
        "value, sql",
        [
            (None, "NULL"),
            (True, "TRUE"),
            (False, "FALSE"),
            (42, "42"),
            (-7, "-7"),
            (1.5, "1.5"),
            (Decimal("10.250"), "10.250"),
            ("plain", "'plain'"),
            ("O'Brien", "'O''Brien'"),
            ("", "''"),
            (b"\x00\xff", "X'00FF'"),
            (dt.date(2024, 1, 31), "DATE '2024-01-31'"),
            (dt.datetime(2024, 1, 31, 12, 30, 5), "TIMESTAMP '2024-01-31 12:30:05'"),
            (dt.time(8, 15), "TIME '08:15:00'"),
        ],
    )
    def test_literal(self, lz: Literalizer, value, sql) -> None:
        assert lz.literal(value) == sql

    def test_non_finite_numbers_are_quoted(self, lz: Literalizer) -> None:
        assert lz.literal(float("nan")) == "'NaN'"
        assert lz.literal(float("inf")) == "'Infinity'"
        assert lz.literal(float("-inf")) == "'-Infinity'"
        assert lz.literal(Decimal("Infinity")) == "'Infinity'"

    def test_sequences(self, lz: Literalizer) -> None:
        assert lz.literal([1, "a", None]) == "(1, 'a', NULL)"
        assert lz.literal(()) == "(NULL)"

    def test_mapping_is_condition(self, lz: Literalizer) -> None:
        assert lz.literal({"a": 1, "b": "x"}) == "((a = 1) AND (b = 'x'))"

    def test_expression_is_rendered(self, lz: Literalizer) -> None:
        assert lz.literal(col("a") + 1) == "(a + 1)"

    def test_unsupported_type(self, lz: Literalizer) -> None:
        with pytest.raises(LiteralizationError) as exc_info:
            lz.literal(object())
        assert "SQL literal" in str(exc_info.value)

    def test_injection_attempt_stays_inside_literal(self, lz: Literalizer) -> None:
        assert lz.literal("x'; DROP TABLE items; --") == "'x''; DROP TABLE items; --'"


class TestDialectLiterals:
    def test_sqlite(self) -> None:
        lz = Literalizer(get_dialect("sqlite"))
        assert lz.literal(True) == "1"
        assert lz.literal(dt.date(2024, 2, 1)) == "'2024-02-01'"

    def test_mysql_backslashes(self) -> None:
        lz = Literalizer(get_dialect("mysql"))
        assert lz.literal("a\\b'c") == "'a\\\\b''c'"

    def test_postgres_bytes(self) -> None:
        lz = Literalizer(get_dialect("postgresql"))
        assert lz.literal(b"\x01") == "'\\x01'::bytea"

    def test_ilike(self) -> None:
        assert Literalizer(get_dialect("postgresql")).render(col("a").ilike("x%")) == "(a ILIKE 'x%')"
        assert Literalizer(get_dialect("generic")).render(col("a").ilike("x%")) == "(UPPER(a) LIKE UPPER('x%'))"


class TestIdentifiers:
    def test_unquoted_by_default(self, lz: Literalizer) -> None:
        assert lz.identifier("items") == "items"
        assert lz.identifier("items.id") == "items.id"

    def test_quoted(self) -> None:
        lz = Literalizer(get_dialect("generic"), quote_identifiers=True)
        assert lz.identifier("items.id") == '"items"."id"'
        assert lz.identifier('we"ird') == '"we""ird"'
        assert lz.identifier("*") == "*"

    def test_mysql_backticks(self) -> None:
        lz = Literalizer(get_dialect("mysql"), quote_identifiers=True)
        assert lz.render(col("name")) == "`name`"

    def test_table_alias(self, lz: Literalizer) -> None:
        assert lz.table_alias("(SELECT 1)", "t1") == "(SELECT 1) AS t1"
        assert Literalizer(get_dialect("oracle")).table_alias("(SELECT 1)", "t1") == "(SELECT 1) t1"


class TestInterpolate:
    def test_placeholders(self, lz: Literalizer) -> None:
        sql = lz.interpolate("SELECT * FROM t WHERE a = ? AND b = ?", (1, "x'y"))
        assert sql == "SELECT * FROM t WHERE a = 1 AND b = 'x''y'"

    def test_question_mark_inside_quotes_is_kept(self, lz: Literalizer) -> None:
        assert lz.interpolate("SELECT '?' , ?", (5,)) == "SELECT '?' , 5"

    def test_question_mark_inside_quoted_identifier_is_kept(self, lz: Literalizer) -> None:
        assert lz.interpolate('SELECT * FROM t WHERE "a?" = ?', (5,)) == 'SELECT * FROM t WHERE "a?" = 5'
        mysql = Literalizer(get_dialect("mysql"))
        assert mysql.interpolate("SELECT `b?`, ? FROM t", ("x",)) == "SELECT `b?`, 'x' FROM t"

    def test_argument_count_mismatch(self, lz: Literalizer) -> None:
        with pytest.raises(InvalidOperationError):
            lz.interpolate("a = ? AND b = ?", (1,))
        with pytest.raises(InvalidOperationError):
            lz.interpolate("a = ?", (1, 2))

    def test_no_args_returns_sql(self, lz: Literalizer) -> None:
        assert lz.interpolate("SELECT 1", ()) == "SELECT 1"


class TestDeterminism:
    def test_same_tree_same_sql(self, lz: Literalizer) -> None:
        expr = (col("a") == 1) & col("b").in_({"x", "y"}) | (col("c") > dt.date(2024, 1, 1))
        assert lz.render(expr) == lz.render(expr)
