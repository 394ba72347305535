"""
Immutable SQL expression tree.

Filters, projections and orderings are built from a small set of node
types combined with Python operators. Nodes never render themselves: the
:class:`~sqlspine.core.literal.Literalizer` walks the tree and produces
dialect-specific SQL, so one tree can be shared by any number of datasets
and rendered against any dialect.

Manifesto:
    - **Immutable:** Every node is a frozen dataclass, combinators return
      new nodes, subtrees are shared by reference
    - **Injection-safe by construction:** Plain Python values become
      ``Literal`` nodes and are escaped at render time. Only ``Raw`` is
      emitted verbatim, and only when the caller asks for it
    - **No back-references:** A ``Subquery`` points at a dataset, a dataset
      never points back at the trees that embed it

Architecture:
    ::

        Expression
        ├── Column(name, table)          items.price
        ├── Literal(value)               'Asia', 42, (1, 2, 3)
        ├── Raw(sql)                     caller-trusted text
        ├── BinaryOp(op, left, right)    (a = 1), (a AND b), (x / 2)
        ├── UnaryOp(op, operand)         NOT (a = 1)
        ├── Function(name, args)         count(*)
        ├── Subquery(dataset)            (SELECT ...)
        ├── Ordered(expr, descending)    price DESC
        ├── Aliased(expr, alias)         max(x) AS v
        └── Star(table)                  *, items.*

Examples:
    >>> from sqlspine.core.expressions import col, func
    >>> cond = (col("region") == "Asia") & (col("population") > 1_000_000)
    >>> cond.op
    'AND'
    >>> (~(col("id") == 3)).op
    '!='
    >>> func.max(col("price")).as_("v").alias
    'v'

Guardrails:
    ❌ DON'T: Use an expression in ``if``/``and``/``or`` (raises TypeError)
    ✅ DO: Combine conditions with ``&``, ``|`` and ``~``

Tags:
    expression, ast, sql, filter, immutable, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlspine.core.errors import InvalidFilterError, InvalidOperationError
from sqlspine.core.protocols import Queryable

# ---------------------------------------------------------------------------
# Operator tables
# ---------------------------------------------------------------------------

MATHEMATICAL_OPERATORS = frozenset({"+", "-", "*", "/"})
STRING_OPERATORS = frozenset({"||"})
INEQUALITY_OPERATORS = frozenset({"<", ">", "<=", ">="})
EQUALITY_OPERATORS = frozenset({"=", "!=", "IS", "IS NOT"}) | INEQUALITY_OPERATORS
SEARCH_OPERATORS = frozenset({"LIKE", "NOT LIKE", "ILIKE", "NOT ILIKE"})
INCLUSION_OPERATORS = frozenset({"IN", "NOT IN"})
BOOLEAN_OPERATORS = frozenset({"AND", "OR"})

COMPARISON_OPERATORS = EQUALITY_OPERATORS | SEARCH_OPERATORS | INCLUSION_OPERATORS
NO_BOOLEAN_INPUT_OPERATORS = MATHEMATICAL_OPERATORS | STRING_OPERATORS | INEQUALITY_OPERATORS

OPERATOR_INVERSIONS = {
    "AND": "OR",
    "OR": "AND",
    "<": ">=",
    ">": "<=",
    "<=": ">",
    ">=": "<",
    "=": "!=",
    "!=": "=",
    "LIKE": "NOT LIKE",
    "NOT LIKE": "LIKE",
    "ILIKE": "NOT ILIKE",
    "NOT ILIKE": "ILIKE",
    "IN": "NOT IN",
    "NOT IN": "IN",
    "IS": "IS NOT",
    "IS NOT": "IS",
}


# ---------------------------------------------------------------------------
# Base node
# ---------------------------------------------------------------------------


class Expression:
    """Base class for every node. Supplies the operator combinators."""

    __slots__ = ()

    # Identity hashing: ``==`` builds SQL, it does not compare nodes.
    __hash__ = object.__hash__

    def __bool__(self) -> bool:
        raise TypeError(
            "SQL expressions have no truth value; combine them with &, | and ~"
        )

    # -- comparisons -------------------------------------------------------

    def __eq__(self, other: Any) -> BinaryOp:  # type: ignore[override]
        if other is None:
            return BinaryOp("IS", self, Literal(None))
        return BinaryOp("=", self, wrap(other))

    def __ne__(self, other: Any) -> BinaryOp:  # type: ignore[override]
        if other is None:
            return BinaryOp("IS NOT", self, Literal(None))
        return BinaryOp("!=", self, wrap(other))

    def __lt__(self, other: Any) -> BinaryOp:
        return _numeric("<", self, other)

    def __le__(self, other: Any) -> BinaryOp:
        return _numeric("<=", self, other)

    def __gt__(self, other: Any) -> BinaryOp:
        return _numeric(">", self, other)

    def __ge__(self, other: Any) -> BinaryOp:
        return _numeric(">=", self, other)

    # -- arithmetic --------------------------------------------------------

    def __add__(self, other: Any) -> BinaryOp:
        return _numeric("+", self, other)

    def __radd__(self, other: Any) -> BinaryOp:
        return _numeric("+", wrap(other), self)

    def __sub__(self, other: Any) -> BinaryOp:
        return _numeric("-", self, other)

    def __rsub__(self, other: Any) -> BinaryOp:
        return _numeric("-", wrap(other), self)

    def __mul__(self, other: Any) -> BinaryOp:
        return _numeric("*", self, other)

    def __rmul__(self, other: Any) -> BinaryOp:
        return _numeric("*", wrap(other), self)

    def __truediv__(self, other: Any) -> BinaryOp:
        return _numeric("/", self, other)

    def __rtruediv__(self, other: Any) -> BinaryOp:
        return _numeric("/", wrap(other), self)

    def concat(self, other: Any) -> BinaryOp:
        """String concatenation (``||``)."""
        return _numeric("||", self, other)

    # -- boolean -----------------------------------------------------------

    def __and__(self, other: Any) -> BinaryOp:
        return _boolean("AND", self, other)

    def __rand__(self, other: Any) -> BinaryOp:
        return _boolean("AND", other, self)

    def __or__(self, other: Any) -> BinaryOp:
        return _boolean("OR", self, other)

    def __ror__(self, other: Any) -> BinaryOp:
        return _boolean("OR", other, self)

    def __invert__(self) -> Expression:
        return UnaryOp("NOT", self)

    # -- predicates --------------------------------------------------------

    def in_(self, values: Any) -> BinaryOp:
        """``IN`` against a list of values or a dataset."""
        return BinaryOp("IN", self, _collection(values))

    def not_in(self, values: Any) -> BinaryOp:
        return BinaryOp("NOT IN", self, _collection(values))

    def like(self, *patterns: Any) -> BinaryOp:
        """``LIKE``. Several patterns are OR-ed together."""
        return _search("LIKE", self, patterns)

    def ilike(self, *patterns: Any) -> BinaryOp:
        return _search("ILIKE", self, patterns)

    def not_like(self, *patterns: Any) -> Expression:
        return ~_search("LIKE", self, patterns)

    def is_(self, value: Any) -> BinaryOp:
        return BinaryOp("IS", self, wrap(value))

    def is_not(self, value: Any) -> BinaryOp:
        return BinaryOp("IS NOT", self, wrap(value))

    def between(self, low: Any, high: Any) -> BinaryOp:
        return BinaryOp("AND", self >= low, self <= high)

    # -- projection / ordering --------------------------------------------

    def as_(self, alias: str) -> Aliased:
        return Aliased(self, alias)

    def desc(self) -> Ordered:
        return Ordered(self, descending=True)

    def asc(self) -> Ordered:
        return Ordered(self, descending=False)

    @property
    def is_boolean(self) -> bool:
        """Whether this node is known to produce a boolean value."""
        return False


# ---------------------------------------------------------------------------
# Node types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False, slots=True)
class Column(Expression):
    """Column reference, optionally qualified by a table name."""

    name: str
    table: str | None = None


@dataclass(frozen=True, eq=False, slots=True)
class Literal(Expression):
    """A plain Python value, escaped by the literalizer when rendered."""

    value: Any


@dataclass(frozen=True, eq=False, slots=True)
class Raw(Expression):
    """Literal SQL text emitted verbatim.

    Caller-trusted and never escaped: do not build one from user input.
    """

    sql: str


@dataclass(frozen=True, eq=False, slots=True)
class BinaryOp(Expression):
    """Operator applied to two operands."""

    op: str
    left: Any
    right: Any

    @property
    def is_boolean(self) -> bool:
        return self.op in COMPARISON_OPERATORS or self.op in BOOLEAN_OPERATORS

    def __invert__(self) -> Expression:
        if self.op in BOOLEAN_OPERATORS:
            return BinaryOp(OPERATOR_INVERSIONS[self.op], _negate(self.left), _negate(self.right))
        if self.op in COMPARISON_OPERATORS:
            return BinaryOp(OPERATOR_INVERSIONS[self.op], self.left, self.right)
        raise InvalidOperationError(f"operator {self.op} cannot be inverted")


@dataclass(frozen=True, eq=False, slots=True)
class UnaryOp(Expression):
    """Prefix operator, currently only ``NOT``."""

    op: str
    operand: Any

    @property
    def is_boolean(self) -> bool:
        return self.op == "NOT"

    def __invert__(self) -> Expression:
        if self.op == "NOT":
            return self.operand
        return UnaryOp("NOT", self)


@dataclass(frozen=True, eq=False, slots=True)
class Function(Expression):
    """SQL function call."""

    name: str
    args: tuple = ()


@dataclass(frozen=True, eq=False, slots=True)
class Subquery(Expression):
    """A dataset embedded as a parenthesized sub-select."""

    query: Queryable


@dataclass(frozen=True, eq=False, slots=True)
class Ordered(Expression):
    """ORDER BY term."""

    expr: Any
    descending: bool = False

    def invert(self) -> Ordered:
        return Ordered(self.expr, descending=not self.descending)


@dataclass(frozen=True, eq=False, slots=True)
class Aliased(Expression):
    """``expr AS alias``."""

    expr: Any
    alias: str


@dataclass(frozen=True, eq=False, slots=True)
class Star(Expression):
    """``*`` or ``table.*``."""

    table: str | None = None


STAR = Star()


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def col(name: str, table: str | None = None) -> Column:
    """Column reference. ``"items.id"`` is split into table and column."""
    if table is None and "." in name:
        table, name = name.split(".", 1)
    return Column(name, table)


def lit(value: Any) -> Literal:
    """Wrap a Python value so it can take part in operator expressions."""
    return Literal(value)


def raw(sql: str) -> Raw:
    """Caller-trusted SQL fragment, emitted unescaped."""
    return Raw(sql)


class _FunctionFactory:
    """``func.count(STAR)`` → ``Function("count", (STAR,))``."""

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return lambda *args: Function(name, tuple(wrap(a) for a in args))

    def __getitem__(self, name: str) -> Any:
        return getattr(self, name)


func = _FunctionFactory()


def wrap(value: Any) -> Any:
    """Turn a Python value into an expression node (datasets → Subquery)."""
    if isinstance(value, Expression):
        return value
    if isinstance(value, Queryable):
        return Subquery(value)
    return Literal(value)


def sql_and(*exprs: Any) -> Expression:
    """Conjunction of several conditions."""
    return _fold("AND", exprs)


def sql_or(*exprs: Any) -> Expression:
    """Disjunction of several conditions."""
    return _fold("OR", exprs)


def sql_not(expr: Any) -> Expression:
    return _negate(condition(expr))


def from_value_pairs(pairs: Mapping[Any, Any] | Iterable[tuple[Any, Any]], op: str = "AND") -> Expression:
    """Build a condition from ``{column: value}`` pairs.

    ``None`` becomes ``IS NULL``, lists/tuples/sets/datasets become
    ``IN``, ``range`` becomes a bounded interval, anything else ``=``.
    """
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    exprs = []
    for key, value in items:
        left = col(key) if isinstance(key, str) else wrap(key)
        if value is None:
            exprs.append(BinaryOp("IS", left, Literal(None)))
        elif isinstance(value, range):
            exprs.append(BinaryOp("AND", left >= value.start, left < value.stop))
        elif isinstance(value, (list, tuple, set, frozenset)) or isinstance(value, Queryable):
            exprs.append(BinaryOp("IN", left, _collection(value)))
        else:
            exprs.append(BinaryOp("=", left, wrap(value)))
    if not exprs:
        raise InvalidFilterError("empty condition mapping")
    return _fold(op, exprs)


def condition(cond: Any) -> Expression:
    """Coerce a filter argument (expression, mapping, pair list) to a node."""
    if cond is True or cond is False:
        raise InvalidFilterError("Invalid filter specified. Did you mean to supply an expression?")
    if isinstance(cond, Expression):
        return cond
    if isinstance(cond, Mapping):
        return from_value_pairs(cond)
    if isinstance(cond, (list, tuple)) and cond and all(
        isinstance(p, tuple) and len(p) == 2 for p in cond
    ):
        return from_value_pairs(cond)
    if isinstance(cond, str):
        return Raw(f"({cond})")
    raise InvalidFilterError(f"Invalid filter argument: {cond!r}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _fold(op: str, exprs: Iterable[Any]) -> Expression:
    nodes = [condition(e) for e in exprs]
    if not nodes:
        raise InvalidFilterError(f"{op} requires at least one condition")
    result = nodes[0]
    for node in nodes[1:]:
        result = BinaryOp(op, result, node)
    return result


def _negate(value: Any) -> Expression:
    node = wrap(value)
    if isinstance(node, (BinaryOp, UnaryOp)) and node.is_boolean:
        return ~node
    return UnaryOp("NOT", node)


def _numeric(op: str, left: Any, right: Any) -> BinaryOp:
    right = wrap(right)
    for operand in (left, right):
        if isinstance(operand, Literal) and isinstance(operand.value, bool):
            raise InvalidOperationError(f"cannot apply {op} to a boolean expression")
        if isinstance(operand, Expression) and operand.is_boolean:
            raise InvalidOperationError(f"cannot apply {op} to a boolean expression")
    return BinaryOp(op, left, right)


def _boolean(op: str, left: Any, right: Any) -> BinaryOp:
    left, right = condition(left), condition(right)
    for operand in (left, right):
        if isinstance(operand, BinaryOp) and not operand.is_boolean:
            raise InvalidOperationError(f"cannot apply {op} to a non-boolean expression")
    return BinaryOp(op, left, right)


def _collection(values: Any) -> Any:
    if isinstance(values, Queryable):
        return Subquery(values)
    if isinstance(values, Expression):
        return values
    if isinstance(values, (set, frozenset)):
        return Literal(tuple(sorted(values, key=repr)))
    return Literal(tuple(values))


def _search(op: str, left: Expression, patterns: tuple) -> BinaryOp:
    if not patterns:
        raise InvalidFilterError(f"{op} requires at least one pattern")
    nodes = [BinaryOp(op, left, wrap(p)) for p in patterns]
    result = nodes[0]
    for node in nodes[1:]:
        result = BinaryOp("OR", result, node)
    return result


__all__ = [
    "Expression",
    "Column",
    "Literal",
    "Raw",
    "BinaryOp",
    "UnaryOp",
    "Function",
    "Subquery",
    "Ordered",
    "Aliased",
    "Star",
    "STAR",
    "col",
    "lit",
    "raw",
    "func",
    "wrap",
    "sql_and",
    "sql_or",
    "sql_not",
    "from_value_pairs",
    "condition",
    "OPERATOR_INVERSIONS",
]
