"""Tests for the expression model and its operator DSL."""

from __future__ import annotations

import pytest

from sqlspine.core.dialect import get_dialect
from sqlspine.core.errors import InvalidFilterError, InvalidOperationError
from sqlspine.core.expressions import (
    STAR,
    BinaryOp,
    Column,
    Literal,
    Raw,
    Subquery,
    UnaryOp,
    col,
    condition,
    from_value_pairs,
    func,
    lit,
    raw,
    sql_and,
    sql_not,
    sql_or,
)
from sqlspine.core.literal import Literalizer


@pytest.fixture
def render():
    return Literalizer(get_dialect("generic")).render


# =========================================================================
# Constructors
# =========================================================================


class TestConstructors:
    def test_col_splits_qualified_name(self) -> None:
        c = col("items.price")
        assert isinstance(c, Column)
        assert (c.table, c.name) == ("items", "price")

    def test_col_with_explicit_table(self, render) -> None:
        assert render(col("price", "items")) == "items.price"

    def test_lit_and_raw(self, render) -> None:
        assert isinstance(lit(1), Literal)
        assert render(lit("x")) == "'x'"
        assert render(raw("NOW()")) == "NOW()"

    def test_func_factory(self, render) -> None:
        assert render(func.count(STAR)) == "count(*)"
        assert render(func.coalesce(col("a"), 0)) == "coalesce(a, 0)"
        assert render(func["max"](col("a"))) == "max(a)"

    def test_nodes_are_immutable(self) -> None:
        c = col("a")
        with pytest.raises(AttributeError):
            c.name = "b"

    def test_no_truth_value(self) -> None:
        with pytest.raises(TypeError):
            bool(col("a") == 1)


# =========================================================================
# Operators
# =========================================================================


class TestOperators:
    @pytest.mark.parametrize(
        "expr, sql",
        [
            (lambda: col("a") == 1, "(a = 1)"),
            (lambda: col("a") != 1, "(a != 1)"),
            (lambda: col("a") < 1, "(a < 1)"),
            (lambda: col("a") <= 1, "(a <= 1)"),
            (lambda: col("a") > 1, "(a > 1)"),
            (lambda: col("a") >= 1, "(a >= 1)"),
            (lambda: col("a") == None, "(a IS NULL)"),  # noqa: E711
            (lambda: col("a") != None, "(a IS NOT NULL)"),  # noqa: E711
            (lambda: col("a") + 1, "(a + 1)"),
            (lambda: 10 - col("a"), "(10 - a)"),
            (lambda: col("a") * col("b"), "(a * b)"),
            (lambda: col("population") / 1_000_000, "(population / 1000000)"),
            (lambda: col("a").concat("x"), "(a || 'x')"),
        ],
    )
    def test_binary(self, render, expr, sql) -> None:
        assert render(expr()) == sql

    def test_and_or(self, render) -> None:
        a, b, c = col("a") == 1, col("b") == 2, col("c") == 3
        assert render(a & b) == "((a = 1) AND (b = 2))"
        assert render(a | b) == "((a = 1) OR (b = 2))"
        assert render((a & b) & c) == "((a = 1) AND (b = 2) AND (c = 3))"
        assert render((a | b) & c) == "(((a = 1) OR (b = 2)) AND (c = 3))"

    def test_in(self, render) -> None:
        expr = col("name").in_(["France", "Germany", "Italy"])
        assert render(expr) == "(name IN ('France', 'Germany', 'Italy'))"
        assert render(col("id").not_in((1, 2))) == "(id NOT IN (1, 2))"

    def test_empty_in(self, render) -> None:
        assert render(col("id").in_([])) == "(1 = 0)"
        assert render(col("id").not_in([])) == "(1 = 1)"

    def test_like_multiple_patterns(self, render) -> None:
        expr = col("name").like("a%", "b%")
        assert render(expr) == "((name LIKE 'a%') OR (name LIKE 'b%'))"

    def test_between(self, render) -> None:
        assert render(col("x").between(1, 5)) == "((x >= 1) AND (x <= 5))"

    def test_is(self, render) -> None:
        assert render(col("flag").is_(True)) == "(flag IS TRUE)"
        assert render(col("flag").is_not(None)) == "(flag IS NOT NULL)"

    def test_alias_and_order(self, render) -> None:
        assert render(col("a").as_("b")) == "a AS b"
        assert render(col("a").desc()) == "a DESC"
        assert render(col("a").asc()) == "a ASC"

    def test_arithmetic_on_boolean_raises(self) -> None:
        with pytest.raises(InvalidOperationError):
            (col("a") == 1) + 1
        with pytest.raises(InvalidOperationError):
            col("a") + True

    def test_and_on_non_boolean_raises(self) -> None:
        with pytest.raises(InvalidOperationError):
            (col("a") + 1) & (col("b") == 1)


# =========================================================================
# Negation
# =========================================================================


class TestNegation:
    @pytest.mark.parametrize(
        "expr, sql",
        [
            (lambda: ~(col("a") == 1), "(a != 1)"),
            (lambda: ~(col("a") < 1), "(a >= 1)"),
            (lambda: ~(col("a") == None), "(a IS NOT NULL)"),  # noqa: E711
            (lambda: ~col("a").in_([1]), "(a NOT IN (1))"),
            (lambda: ~col("a").like("x%"), "(a NOT LIKE 'x%')"),
            (lambda: ~((col("a") == 1) & (col("b") == 2)), "((a != 1) OR (b != 2))"),
        ],
    )
    def test_inversion(self, render, expr, sql) -> None:
        assert render(expr()) == sql

    def test_not_on_plain_column(self, render) -> None:
        assert render(~col("active")) == "NOT active"

    def test_double_not(self, render) -> None:
        assert render(~~col("active")) == "active"

    def test_sql_not_mapping(self, render) -> None:
        assert render(sql_not({"a": 1})) == "(a != 1)"

    def test_arithmetic_cannot_invert(self) -> None:
        with pytest.raises(InvalidOperationError):
            ~(col("a") + 1)


# =========================================================================
# Conditions
# =========================================================================


class TestConditions:
    def test_from_value_pairs(self, render) -> None:
        expr = from_value_pairs({"a": 1, "b": None, "c": [1, 2], "d": range(1, 5)})
        assert render(expr) == (
            "((a = 1) AND (b IS NULL) AND (c IN (1, 2)) AND (d >= 1) AND (d < 5))"
        )

    def test_pairs_list(self, render) -> None:
        assert render(condition([("a", 1), ("b", 2)])) == "((a = 1) AND (b = 2))"

    def test_set_values_sorted(self, render) -> None:
        assert render(from_value_pairs({"a": {3, 1, 2}})) == "(a IN (1, 2, 3))"

    def test_string_condition_is_raw(self) -> None:
        node = condition("x > 1")
        assert isinstance(node, Raw)
        assert node.sql == "(x > 1)"

    @pytest.mark.parametrize("value", [True, False])
    def test_boolean_literal_rejected(self, value) -> None:
        with pytest.raises(InvalidFilterError):
            condition(value)

    def test_unknown_argument_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            condition(42)

    def test_empty_mapping_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            from_value_pairs({})

    def test_sql_and_or(self, render) -> None:
        assert render(sql_and({"a": 1}, col("b") > 2)) == "((a = 1) AND (b > 2))"
        assert render(sql_or({"a": 1}, {"b": 2})) == "((a = 1) OR (b = 2))"

    def test_dataset_becomes_subquery(self, mock_db, render) -> None:
        sub = mock_db["orders"].select("item_id")
        expr = col("id").in_(sub)
        assert isinstance(expr.right, Subquery)
        assert render(expr) == "(id IN (SELECT item_id FROM orders))"

    def test_exists(self, mock_db, render) -> None:
        node = mock_db["orders"].filter(col("orders.item_id") == col("items.id")).exists()
        assert isinstance(node, UnaryOp)
        assert render(node) == "EXISTS (SELECT * FROM orders WHERE (orders.item_id = items.id))"

    def test_trees_are_shared(self, render) -> None:
        base = col("a") == 1
        left = base & (col("b") == 2)
        right = base | (col("c") == 3)
        assert isinstance(left, BinaryOp) and left.left is base and right.left is base
        assert render(base) == "(a = 1)"
