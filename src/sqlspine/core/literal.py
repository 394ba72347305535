"""
SQL Literalizer: Python values and expression trees → SQL text.

Manifesto:
    Generated SQL is only as safe as the place where values meet text.
    This module is that place. Every ``str`` and ``bytes`` value goes
    through the dialect's ``literal_string``/``literal_bytes``, and no other
    code path concatenates caller data into SQL. ``Raw`` nodes are the one
    documented exception and are emitted verbatim.

    - **Total:** Every supported Python type renders, anything else raises
      ``LiteralizationError`` instead of falling back to ``str()``
    - **Deterministic:** The same tree renders to the same string every time
    - **Dialect-correct:** Booleans, dates, bytes and ILIKE follow the dialect

Architecture:
    ::

        Literalizer(dialect, quote_identifiers)
        │
        ├── literal(value)      None, bool, int, float, Decimal, str, bytes,
        │                       date, datetime, time, list/tuple, dict,
        │                       Expression, Dataset (sub-select)
        ├── render(expr)        walks Column/BinaryOp/UnaryOp/Function/...
        ├── identifier(name)    quoted only when quote_identifiers is on
        └── interpolate(sql, args)  fills '?' placeholders with literals

Examples:
    >>> from sqlspine.core.dialect import get_dialect
    >>> from sqlspine.core.expressions import col
    >>> lz = Literalizer(get_dialect("generic"))
    >>> lz.literal("O'Brien")
    "'O''Brien'"
    >>> lz.render(col("name").in_(["France", "Germany"]))
    "(name IN ('France', 'Germany'))"

Tags:
    literal, escaping, rendering, sql-injection, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import datetime as dt
import math
from decimal import Decimal
from typing import Any

from sqlspine.core.dialect import Dialect
from sqlspine.core.errors import InvalidOperationError, LiteralizationError
from sqlspine.core.expressions import (
    BOOLEAN_OPERATORS,
    Aliased,
    BinaryOp,
    Column,
    Expression,
    Function,
    Literal,
    Ordered,
    Raw,
    Star,
    Subquery,
    UnaryOp,
    from_value_pairs,
)
from sqlspine.core.protocols import Queryable


class Literalizer:
    """Renders values and expression trees for one dialect."""

    def __init__(self, dialect: Dialect, quote_identifiers: bool = False):
        self.dialect = dialect
        self.quote_identifiers = quote_identifiers

    def __repr__(self) -> str:
        return f"Literalizer({self.dialect.name!r}, quote_identifiers={self.quote_identifiers})"

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def identifier(self, name: str) -> str:
        """Render a column or table name, qualified names part by part."""
        if name == "*":
            return name
        if "." in name:
            return ".".join(self.identifier(part) for part in name.split("."))
        if self.quote_identifiers:
            return self.dialect.quote_identifier(name)
        return name

    def table_alias(self, source_sql: str, alias: str) -> str:
        return f"{source_sql}{self.dialect.table_alias_keyword}{self.identifier(alias)}"

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def literal(self, value: Any) -> str:
        """Render one Python value as an SQL literal."""
        if isinstance(value, Expression):
            return self.render(value)
        if isinstance(value, Queryable):
            return f"({value.select_sql()})"
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.dialect.literal_boolean(value)
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return self._literal_float(value)
        if isinstance(value, Decimal):
            if not value.is_finite():
                return self.dialect.literal_string(str(value))
            return format(value, "f")
        if isinstance(value, str):
            return self.dialect.literal_string(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self.dialect.literal_bytes(bytes(value))
        # datetime is a date subclass, check it first
        if isinstance(value, dt.datetime):
            return self.dialect.literal_datetime(value)
        if isinstance(value, dt.date):
            return self.dialect.literal_date(value)
        if isinstance(value, dt.time):
            return self.dialect.literal_time(value)
        if isinstance(value, (list, tuple)):
            if not value:
                return "(NULL)"
            return "(" + ", ".join(self.literal(v) for v in value) + ")"
        if isinstance(value, dict):
            return self.render(from_value_pairs(value))
        raise LiteralizationError(value)

    def _literal_float(self, value: float) -> str:
        if math.isnan(value):
            return self.dialect.literal_string("NaN")
        if math.isinf(value):
            return self.dialect.literal_string("Infinity" if value > 0 else "-Infinity")
        return repr(value)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def render(self, expr: Any) -> str:
        """Render an expression tree (plain values are literalized)."""
        if isinstance(expr, Column):
            name = expr.name if expr.table is None else f"{expr.table}.{expr.name}"
            return self.identifier(name)
        if isinstance(expr, Literal):
            return self.literal(expr.value)
        if isinstance(expr, Raw):
            return expr.sql
        if isinstance(expr, BinaryOp):
            return self._render_binary(expr)
        if isinstance(expr, UnaryOp):
            return f"{expr.op} {self.render(expr.operand)}"
        if isinstance(expr, Function):
            return f"{expr.name}({', '.join(self.render(a) for a in expr.args)})"
        if isinstance(expr, Subquery):
            return f"({expr.query.select_sql()})"
        if isinstance(expr, Ordered):
            return f"{self.render(expr.expr)} {'DESC' if expr.descending else 'ASC'}"
        if isinstance(expr, Aliased):
            return f"{self.render(expr.expr)} AS {self.identifier(expr.alias)}"
        if isinstance(expr, Star):
            return "*" if expr.table is None else f"{self.identifier(expr.table)}.*"
        if isinstance(expr, str):
            return self.identifier(expr)
        return self.literal(expr)

    def _render_binary(self, expr: BinaryOp) -> str:
        op = expr.op
        if op in BOOLEAN_OPERATORS:
            parts = [self.render(o) for o in _flatten(op, expr)]
            return "(" + f" {op} ".join(parts) + ")"

        left = self.render(expr.left)
        if op in ("IN", "NOT IN"):
            right = expr.right
            if isinstance(right, Literal) and isinstance(right.value, (list, tuple)) and not right.value:
                # Empty set: IN matches nothing, NOT IN matches everything.
                return "(1 = 0)" if op == "IN" else "(1 = 1)"
            return f"({left} {op} {self.render(right)})"
        if op in ("ILIKE", "NOT ILIKE"):
            return self.dialect.ilike(left, self.render(expr.right), negate=op == "NOT ILIKE")
        return f"({left} {op} {self.render(expr.right)})"

    # ------------------------------------------------------------------
    # Placeholders
    # ------------------------------------------------------------------

    def interpolate(self, sql: str, args: tuple | list) -> str:
        """Replace each ``?`` outside string literals and quoted identifiers with the next literal."""
        if not args:
            return sql
        out: list[str] = []
        remaining = list(args)
        quotes = ("'", self.dialect.identifier_quote)
        quote: str | None = None
        for char in sql:
            if quote is None and char in quotes:
                quote = char
            elif char == quote:
                quote = None
            if char == "?" and quote is None:
                if not remaining:
                    raise InvalidOperationError(
                        f"Not enough arguments for placeholders in {sql!r}"
                    )
                out.append(self.literal(remaining.pop(0)))
            else:
                out.append(char)
        if remaining:
            raise InvalidOperationError(f"Too many arguments for placeholders in {sql!r}")
        return "".join(out)


def _flatten(op: str, expr: Any) -> list[Any]:
    """Operands of nested same-operator AND/OR nodes, left to right."""
    if isinstance(expr, BinaryOp) and expr.op == op:
        return _flatten(op, expr.left) + _flatten(op, expr.right)
    return [expr]


__all__ = ["Literalizer"]
