"""
Dataset: an immutable, chainable query over a table or view.

Manifesto:
    A Dataset is a value. Every chained call returns a new Dataset whose
    options record is the old one with one field replaced, so datasets
    can be stored in module globals, shared between threads and used as
    building blocks for other datasets without defensive copying.

    - **Immutable:** ``DatasetOptions`` is a frozen dataclass, mutators use
      ``dataclasses.replace``
    - **Pure rendering:** ``to_sql`` depends only on the options record and
      the Database's dialect
    - **Fail before sending:** Capability and usage errors (EXCEPT on MySQL,
      UPDATE on a join, LIMIT 0) raise while building
    - **Scoped execution:** Execution methods hold a pooled connection only
      for the duration of one statement

Architecture:
    ::

        db["countries"]                       Dataset(sources=("countries",))
          .filter(col("region") == "Asia")    where = (region = 'Asia')
          .select("name", col("pop") / 1000)  select = (name, (pop / 1000))
          .order(col("name").desc())          order = (name DESC)
          .limit(10)                          limit = 10
                │
                ▼ select_sql()
        SELECT name, (pop / 1000) FROM countries
          WHERE (region = 'Asia') ORDER BY name DESC LIMIT 10

        Clause order: SELECT [DISTINCT] cols FROM sources JOIN ... WHERE
        GROUP BY HAVING (UNION|INTERSECT|EXCEPT ...) ORDER BY LIMIT/OFFSET
        lock

Examples:
    >>> from sqlspine import connect, col
    >>> db = connect("mock://")
    >>> ds = db["countries"].filter(col("region") == "Asia")
    >>> ds.select("name", col("population") / 1_000_000).select_sql()
    "SELECT name, (population / 1000000) FROM countries WHERE (region = 'Asia')"
    >>> ds.filter(name=["France", "Italy"]).select_sql()
    "SELECT * FROM countries WHERE ((region = 'Asia') AND (name IN ('France', 'Italy')))"

Guardrails:
    ❌ DON'T: Build WHERE clauses with f-strings
    ✅ DO: ``filter(col("x") == value)`` or ``filter("x = ?", value)``

Tags:
    dataset, query-builder, immutable, sql, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import (
    ColumnCountError,
    InvalidFilterError,
    InvalidOperationError,
    SqlSpineError,
    UnsupportedOperationError,
)
from sqlspine.core.expressions import (
    STAR,
    Aliased,
    BinaryOp,
    Column,
    Expression,
    Ordered,
    Raw,
    Subquery,
    UnaryOp,
    col,
    condition,
    from_value_pairs,
    func,
    lit,
    sql_not,
)
from sqlspine.core.protocols import Queryable
from sqlspine.core.sproc import StoredProcedure, run_sproc

if TYPE_CHECKING:
    from sqlspine.core.database import Database

JOIN_TYPES = {
    "inner": "INNER",
    "left": "LEFT OUTER",
    "left_outer": "LEFT OUTER",
    "right": "RIGHT OUTER",
    "right_outer": "RIGHT OUTER",
    "full": "FULL OUTER",
    "full_outer": "FULL OUTER",
    "cross": "CROSS",
}

COMPOUND_KINDS = ("union", "intersect", "except")


# =============================================================================
# OPTIONS
# =============================================================================


@dataclass(frozen=True)
class Join:
    """One JOIN clause. ``source`` is a table name or an aliased sub-select."""

    kind: str
    source: Any
    condition: Any = None


@dataclass(frozen=True)
class Compound:
    kind: str
    all: bool
    dataset: Dataset


@dataclass(frozen=True)
class DatasetOptions:
    """Everything a Dataset knows about its query."""

    sources: tuple = ()
    select: tuple = ()
    distinct: tuple | None = None
    where: Any = None
    joins: tuple[Join, ...] = ()
    group: tuple = ()
    having: Any = None
    order: tuple = ()
    limit: int | None = None
    offset: int | None = None
    compounds: tuple[Compound, ...] = ()
    lock: str | None = None
    sql: str | None = None
    row_proc: Callable[[dict], Any] | None = None
    sproc: StoredProcedure | None = None
    alias_count: int = 0
    last_joined: str | None = None


# =============================================================================
# DATASET
# =============================================================================


class Dataset:
    """Immutable query value bound to a Database."""

    __slots__ = ("db", "opts")

    def __init__(self, db: Database, opts: DatasetOptions | None = None):
        self.db = db
        self.opts = opts or DatasetOptions()

    def __repr__(self) -> str:
        try:
            return f"<Dataset {self.select_sql()!r}>"
        except SqlSpineError:
            return f"<Dataset sources={self.opts.sources!r}>"

    def clone(self, **changes: Any) -> Dataset:
        """New Dataset with the given options replaced."""
        return Dataset(self.db, replace(self.opts, **changes))

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def from_(self, *tables: Any) -> Dataset:
        """Replace the FROM list. Datasets become aliased sub-selects."""
        count = self.opts.alias_count
        sources = []
        for table in tables:
            if isinstance(table, Queryable):
                count += 1
                sources.append(Aliased(Subquery(table), f"t{count}"))
            else:
                sources.append(table)
        return self.clone(sources=tuple(sources), alias_count=count, last_joined=None)

    def from_self(self, alias: str | None = None) -> Dataset:
        """Wrap this dataset as ``SELECT * FROM (...) AS t1``."""
        inner = self.clone(row_proc=None, sproc=None)
        return Dataset(
            self.db,
            DatasetOptions(
                sources=(Aliased(Subquery(inner), alias or "t1"),),
                row_proc=self.opts.row_proc,
                alias_count=1,
            ),
        )

    def first_source(self) -> str:
        if not self.opts.sources:
            raise InvalidOperationError("No source specified for query")
        source = self.opts.sources[0]
        if isinstance(source, Aliased):
            return source.alias
        if isinstance(source, str):
            return source
        raise InvalidOperationError(f"Unsupported source {source!r}")

    # -------------------------------------------------------------------------
    # Projection
    # -------------------------------------------------------------------------

    def select(self, *columns: Any) -> Dataset:
        return self.clone(select=tuple(columns))

    def select_all(self) -> Dataset:
        return self.clone(select=())

    def select_more(self, *columns: Any) -> Dataset:
        current = self.opts.select or (STAR,)
        return self.clone(select=current + tuple(columns))

    def distinct(self, *columns: Any) -> Dataset:
        """``SELECT DISTINCT``, or ``DISTINCT ON (columns)`` where supported."""
        if columns and not self.db.dialect.supports_distinct_on:
            raise UnsupportedOperationError(
                f"DISTINCT ON not supported by the {self.db.dialect.name} dialect"
            )
        return self.clone(distinct=tuple(columns))

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def _condition(self, conds: tuple, named: dict[str, Any]) -> Expression:
        if conds and isinstance(conds[0], str):
            if named:
                raise InvalidFilterError("Cannot mix a SQL string filter with keyword conditions")
            text = self.db.literalizer.interpolate(conds[0], conds[1:])
            return Raw(f"({text})")
        nodes = [condition(c) for c in conds]
        if named:
            nodes.append(from_value_pairs(named))
        if not nodes:
            raise InvalidFilterError("No filter conditions given")
        result = nodes[0]
        for node in nodes[1:]:
            result = BinaryOp("AND", result, node)
        return result

    def filter(self, *conds: Any, **named: Any) -> Dataset:
        """Add a condition, AND-ed with any existing WHERE clause.

        Accepts expressions, ``{column: value}`` mappings, keyword
        equalities, or a SQL string with ``?`` placeholders followed by
        its arguments.
        """
        cond = self._condition(conds, named)
        where = cond if self.opts.where is None else BinaryOp("AND", self.opts.where, cond)
        return self.clone(where=where)

    where = filter

    def exclude(self, *conds: Any, **named: Any) -> Dataset:
        """Add a negated condition (``NOT``, comparisons are inverted)."""
        cond = sql_not(self._condition(conds, named))
        where = cond if self.opts.where is None else BinaryOp("AND", self.opts.where, cond)
        return self.clone(where=where)

    def or_filter(self, *conds: Any, **named: Any) -> Dataset:
        if self.opts.where is None:
            raise InvalidOperationError("No existing filter found")
        return self.clone(where=BinaryOp("OR", self.opts.where, self._condition(conds, named)))

    def having(self, *conds: Any, **named: Any) -> Dataset:
        if not self.opts.group:
            raise InvalidOperationError("Can only specify a HAVING clause on a grouped dataset")
        cond = self._condition(conds, named)
        having = cond if self.opts.having is None else BinaryOp("AND", self.opts.having, cond)
        return self.clone(having=having)

    def unfiltered(self) -> Dataset:
        return self.clone(where=None, having=None)

    # -------------------------------------------------------------------------
    # Ordering, grouping, limits, locks
    # -------------------------------------------------------------------------

    def order(self, *columns: Any) -> Dataset:
        return self.clone(order=tuple(columns))

    order_by = order

    def order_more(self, *columns: Any) -> Dataset:
        return self.clone(order=self.opts.order + tuple(columns))

    def reverse_order(self, *columns: Any) -> Dataset:
        """Invert the given (or current) ordering."""
        return self.clone(order=tuple(_invert_order(c) for c in (columns or self.opts.order)))

    def unordered(self) -> Dataset:
        return self.clone(order=())

    def group(self, *columns: Any) -> Dataset:
        return self.clone(group=tuple(columns))

    group_by = group

    def ungrouped(self) -> Dataset:
        return self.clone(group=(), having=None)

    def group_and_count(self, *columns: Any) -> Dataset:
        """``SELECT cols, count(*) AS count ... GROUP BY cols``."""
        return self.group(*columns).select(*columns, func.count(STAR).as_("count"))

    def limit(self, limit: int | None, offset: int | None = None) -> Dataset:
        if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
            raise InvalidOperationError(f"Limits must be greater than or equal to 1, got {limit!r}")
        if offset is not None and (not isinstance(offset, int) or isinstance(offset, bool) or offset < 0):
            raise InvalidOperationError(f"Offsets must be greater than or equal to 0, got {offset!r}")
        return self.clone(limit=limit, offset=offset)

    def unlimited(self) -> Dataset:
        return self.clone(limit=None, offset=None)

    def for_update(self) -> Dataset:
        return self.lock_style("update")

    def lock_style(self, mode: str | None) -> Dataset:
        return self.clone(lock=mode)

    # -------------------------------------------------------------------------
    # Joins
    # -------------------------------------------------------------------------

    def join(
        self,
        table: Any,
        conditions: Any = None,
        *,
        kind: str = "inner",
        alias: str | None = None,
    ) -> Dataset:
        """Join a table or a dataset.

        ``conditions`` is an expression, or a ``{joined_col: existing_col}``
        mapping whose keys are qualified with the joined table and whose
        values are qualified with the previously joined (or first) table.
        Joined datasets are aliased ``t1``, ``t2``, ... unless ``alias`` is given.
        """
        if kind not in JOIN_TYPES:
            raise InvalidOperationError(f"Invalid join type: {kind!r}")
        count = self.opts.alias_count
        if isinstance(table, Queryable):
            if alias is None:
                count += 1
                alias = f"t{count}"
            source: Any = Aliased(Subquery(table), alias)
        elif alias is not None:
            source = Aliased(Column(table), alias)
        else:
            source = table
        joined = alias or table

        on = None
        if conditions is not None:
            if isinstance(conditions, Expression):
                on = conditions
            else:
                previous = self.opts.last_joined or self.first_source()
                pairs = conditions.items() if isinstance(conditions, Mapping) else conditions
                on = from_value_pairs(
                    [(_qualify(k, joined), _qualify(v, previous)) for k, v in pairs]
                )
        elif JOIN_TYPES[kind] != "CROSS":
            raise InvalidOperationError(f"{JOIN_TYPES[kind]} JOIN requires a join condition")

        return self.clone(
            joins=self.opts.joins + (Join(JOIN_TYPES[kind], source, on),),
            alias_count=count,
            last_joined=joined,
        )

    def inner_join(self, table: Any, conditions: Any = None, **kw: Any) -> Dataset:
        return self.join(table, conditions, kind="inner", **kw)

    def left_join(self, table: Any, conditions: Any = None, **kw: Any) -> Dataset:
        return self.join(table, conditions, kind="left", **kw)

    def right_join(self, table: Any, conditions: Any = None, **kw: Any) -> Dataset:
        return self.join(table, conditions, kind="right", **kw)

    def full_join(self, table: Any, conditions: Any = None, **kw: Any) -> Dataset:
        return self.join(table, conditions, kind="full", **kw)

    def cross_join(self, table: Any, **kw: Any) -> Dataset:
        return self.join(table, None, kind="cross", **kw)

    # -------------------------------------------------------------------------
    # Compounds
    # -------------------------------------------------------------------------

    def _compound(self, kind: str, other: Dataset, all: bool, from_self: bool) -> Dataset:
        self.db.dialect.check_compound(kind, all)
        opts = self.opts
        base = self.from_self() if opts.order or opts.limit is not None or opts.offset else self
        ds = base.clone(compounds=base.opts.compounds + (Compound(kind, all, other),))
        return ds.from_self() if from_self else ds

    def union(self, other: Dataset, all: bool = False, from_self: bool = True) -> Dataset:
        return self._compound("union", other, all, from_self)

    def intersect(self, other: Dataset, all: bool = False, from_self: bool = True) -> Dataset:
        """Raises ``UnsupportedOperationError`` on dialects without INTERSECT."""
        return self._compound("intersect", other, all, from_self)

    def except_(self, other: Dataset, all: bool = False, from_self: bool = True) -> Dataset:
        """Raises ``UnsupportedOperationError`` on dialects without EXCEPT."""
        return self._compound("except", other, all, from_self)

    # -------------------------------------------------------------------------
    # Misc options
    # -------------------------------------------------------------------------

    def with_sql(self, sql: str, *args: Any) -> Dataset:
        """Use fixed SQL for selects. ``?`` placeholders take ``args``."""
        return self.clone(sql=self.db.literalizer.interpolate(sql, args))

    def with_row_proc(self, fn: Callable[[dict], Any]) -> Dataset:
        """Pass every fetched row dict through ``fn``."""
        return self.clone(row_proc=fn)

    def naked(self) -> Dataset:
        """Drop the row proc, rows come back as plain dicts."""
        return self.clone(row_proc=None)

    def literal(self, value: Any) -> str:
        return self.db.literalizer.literal(value)

    def exists(self) -> Expression:
        """``EXISTS (SELECT ...)`` for use in another dataset's filter."""
        return UnaryOp("EXISTS", Subquery(self))

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def to_sql(self, kind: str = "select", *values: Any, **named: Any) -> str:
        """Render the statement for ``select``/``insert``/``update``/``delete``."""
        kind = kind.lstrip(":").lower()
        if kind == "select":
            return self.select_sql()
        if kind == "insert":
            return self.insert_sql(*values, **named)
        if kind == "update":
            return self.update_sql(values[0] if values else named)
        if kind == "delete":
            return self.delete_sql()
        raise InvalidOperationError(f"Unknown statement kind {kind!r}")

    def select_sql(self) -> str:
        o = self.opts
        if o.sql is not None:
            return o.sql
        lz = self.db.literalizer
        dialect = self.db.dialect

        sql = "SELECT"
        if o.distinct is not None:
            if o.distinct:
                sql += f" DISTINCT ON ({', '.join(lz.render(c) for c in o.distinct)})"
            else:
                sql += " DISTINCT"
        sql += " " + (", ".join(lz.render(c) for c in o.select) if o.select else "*")
        if o.sources:
            sql += " FROM " + ", ".join(self._source_sql(s) for s in o.sources)
        for join in o.joins:
            sql += f" {join.kind} JOIN {self._source_sql(join.source)}"
            if join.condition is not None:
                sql += f" ON {lz.render(join.condition)}"
        if o.where is not None:
            sql += f" WHERE {lz.render(o.where)}"
        if o.group:
            sql += " GROUP BY " + ", ".join(lz.render(c) for c in o.group)
        if o.having is not None:
            sql += f" HAVING {lz.render(o.having)}"
        for compound in o.compounds:
            keyword = dialect.compound_keyword(compound.kind)
            if compound.all:
                keyword += " ALL"
            sql += f" {keyword} {_compound_member_sql(compound.dataset)}"
        if o.order:
            sql += " ORDER BY " + ", ".join(lz.render(c) for c in o.order)
        sql += dialect.limit_clause(o.limit, o.offset)
        if o.lock:
            sql += dialect.lock_clause(o.lock)
        return sql

    sql = property(select_sql)

    def _source_sql(self, source: Any) -> str:
        lz = self.db.literalizer
        if isinstance(source, Aliased):
            return lz.table_alias(lz.render(source.expr), source.alias)
        if isinstance(source, str):
            return lz.identifier(source)
        return lz.render(source)

    def _target_table(self, action: str) -> str:
        o = self.opts
        if o.sql is not None:
            raise InvalidOperationError(f"Cannot {action} a dataset with fixed SQL")
        if action != "insert" and (o.group or o.joins or o.compounds):
            raise InvalidOperationError(f"A grouped, joined or compound dataset cannot be used for {action}")
        if not o.sources or not isinstance(o.sources[0], str):
            raise InvalidOperationError(f"{action} requires a table source")
        if len(o.sources) > 1:
            raise InvalidOperationError(f"Cannot {action} a dataset with multiple sources")
        return o.sources[0]

    def insert_sql(self, *values: Any, **named: Any) -> str:
        """``INSERT`` for one row: no values, a mapping, a list, or a dataset."""
        table = self.db.literalizer.identifier(self._target_table("insert"))
        lz = self.db.literalizer
        if named:
            if values:
                raise InvalidOperationError("Cannot mix positional and named insert values")
            values = (named,)
        if len(values) == 1:
            value = values[0]
            if isinstance(value, Mapping):
                if not value:
                    return f"INSERT INTO {table} DEFAULT VALUES"
                columns = ", ".join(lz.render(_column(k)) for k in value)
                literals = ", ".join(lz.literal(v) for v in value.values())
                return f"INSERT INTO {table} ({columns}) VALUES ({literals})"
            if isinstance(value, Queryable):
                return f"INSERT INTO {table} {value.select_sql()}"
            if isinstance(value, (list, tuple)):
                values = tuple(value)
        if not values:
            return f"INSERT INTO {table} DEFAULT VALUES"
        return f"INSERT INTO {table} VALUES ({', '.join(lz.literal(v) for v in values)})"

    def update_sql(self, values: Mapping[Any, Any]) -> str:
        table = self.db.literalizer.identifier(self._target_table("update"))
        if not values:
            raise InvalidOperationError("No values given for update")
        lz = self.db.literalizer
        assignments = ", ".join(f"{lz.render(_column(k))} = {lz.literal(v)}" for k, v in values.items())
        sql = f"UPDATE {table} SET {assignments}"
        if self.opts.where is not None:
            sql += f" WHERE {lz.render(self.opts.where)}"
        return sql

    def delete_sql(self) -> str:
        table = self.db.literalizer.identifier(self._target_table("delete"))
        sql = f"DELETE FROM {table}"
        if self.opts.where is not None:
            sql += f" WHERE {self.db.literalizer.render(self.opts.where)}"
        return sql

    # -------------------------------------------------------------------------
    # Stored procedures
    # -------------------------------------------------------------------------

    def prepare_sproc(self, kind: str, name: str) -> Dataset:
        """Dataset whose ``kind`` execution calls procedure ``name``."""
        return self.clone(sproc=StoredProcedure(kind, name))

    def bind(self, *args: Any) -> Dataset:
        if self.opts.sproc is None:
            raise InvalidOperationError("bind() requires a stored procedure dataset")
        return self.clone(sproc=self.opts.sproc.bind(*args))

    def call(self, *args: Any) -> Any:
        """Run the prepared procedure with ``args`` (or the bound ones)."""
        sproc = self.opts.sproc
        if sproc is None:
            raise InvalidOperationError("call() requires a stored procedure dataset")
        return run_sproc(self, sproc.bind(*args) if args else sproc)

    def call_sproc(self, kind: str, name: str, *args: Any) -> Any:
        return self.prepare_sproc(kind, name).call(*args)

    def _sproc_for(self, kind: str) -> StoredProcedure | None:
        sproc = self.opts.sproc
        return sproc if sproc is not None and sproc.handles(kind) else None

    # -------------------------------------------------------------------------
    # Row fetching
    # -------------------------------------------------------------------------

    def decode(self, columns: list[str], row: tuple) -> Any:
        """Row tuple → dict keyed by column name (through the row proc)."""
        record = dict(zip(columns, row, strict=False))
        if self.opts.row_proc is not None:
            return self.opts.row_proc(record)
        return record

    def each(self) -> Iterator[Any]:
        """Execute the SELECT and yield decoded rows."""
        sproc = self._sproc_for("select")
        if sproc is not None:
            yield from run_sproc(self, sproc, "select")
            return
        result = self.db.execute(self.select_sql())
        for row in result.rows:
            yield self.decode(result.columns, row)

    def __iter__(self) -> Iterator[Any]:
        return self.each()

    def all(self) -> list[Any]:
        return list(self.each())

    def columns(self) -> list[str]:
        """Column names the query returns (runs it with LIMIT 1)."""
        ds = self if self.opts.sql is not None else self.limit(1)
        return self.db.execute(ds.select_sql()).columns

    def first(self, *args: Any, **named: Any) -> Any:
        """First row, or ``None``.

        ``first(n)`` returns a list of up to ``n`` rows. Any other
        arguments are filter conditions applied first.
        """
        if len(args) == 1 and isinstance(args[0], int) and not isinstance(args[0], bool) and not named:
            return self.limit(args[0]).all()
        ds = self.filter(*args, **named) if args or named else self
        sproc = ds._sproc_for("first")
        if sproc is not None:
            return run_sproc(ds, sproc, "first")
        if ds.opts.sql is None:
            ds = ds.limit(1)
        for row in ds.each():
            return row
        return None

    def last(self, *args: Any, **named: Any) -> Any:
        """Like ``first`` with the ordering reversed. Requires an order."""
        if not self.opts.order:
            raise InvalidOperationError("No order specified")
        return self.reverse_order().first(*args, **named)

    def single_record(self) -> Any:
        return self.first()

    def single_value(self) -> Any:
        """First column of the first row, or ``None``."""
        row = self.naked().first()
        if row is None:
            return None
        return next(iter(row.values()), None)

    def get(self, column: Any) -> Any:
        return self.select(column).single_value()

    def map(self, column: Any = None) -> list[Any]:
        """Values of one column, or ``fn(row)`` for each row."""
        if callable(column):
            return [column(row) for row in self.each()]
        if column is None:
            raise InvalidOperationError("map() needs a column name or a callable")
        return [row[column] for row in self.naked().each()]

    def to_dict(self, key: str, value: str | None = None) -> dict[Any, Any]:
        """``{row[key]: row[value]}``, or ``{row[key]: row}`` without ``value``."""
        rows = self.naked().each() if value is not None else self.each()
        if value is None:
            return {_field(row, key): row for row in rows}
        return {row[key]: row[value] for row in rows}

    def empty(self) -> bool:
        ds = self._aggregate_dataset().select(lit(1).as_("one")).naked()
        if ds.opts.sql is None:
            ds = ds.limit(1)
        return ds._scalar() is None

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def _aggregate_dataset(self) -> Dataset:
        o = self.opts
        if o.sql is not None or o.compounds or o.distinct is not None or o.group or o.limit is not None or o.offset:
            return self.from_self()
        return self.unordered()

    def _scalar(self) -> Any:
        result = self.db.execute(self.select_sql())
        if not result.rows:
            return None
        return result.rows[0][0]

    def _aggregate(self, function: str, column: Any) -> Any:
        expr = getattr(func, function)(_column(column)).as_(function)
        return self._aggregate_dataset().select(expr).naked()._scalar()

    def count(self) -> int:
        """Number of rows (0 for an empty table)."""
        value = self._aggregate_dataset().select(func.count(STAR).as_("count")).naked()._scalar()
        return int(value or 0)

    def sum(self, column: Any) -> Any:
        return self._aggregate("sum", column)

    def avg(self, column: Any) -> Any:
        return self._aggregate("avg", column)

    def min(self, column: Any) -> Any:
        return self._aggregate("min", column)

    def max(self, column: Any) -> Any:
        return self._aggregate("max", column)

    def range(self, column: Any) -> tuple[Any, Any] | None:
        """``(min, max)`` of a column, ``None`` for an empty table."""
        c = _column(column)
        ds = self._aggregate_dataset().select(func.min(c).as_("v1"), func.max(c).as_("v2")).naked()
        result = self.db.execute(ds.select_sql())
        if not result.rows or result.rows[0][0] is None:
            return None
        return result.rows[0][0], result.rows[0][1]

    # -------------------------------------------------------------------------
    # Modification
    # -------------------------------------------------------------------------

    def insert(self, *values: Any, **named: Any) -> Any:
        """Insert one row and return the new row id reported by the driver.

        Raises:
            ColumnCountError: Positional values do not match the table's
                column count (when the Database knows it).
        """
        sproc = self._sproc_for("insert")
        if sproc is not None:
            return run_sproc(self, sproc.bind(*values) if values else sproc)

        positional = values
        if len(values) == 1 and isinstance(values[0], (list, tuple)):
            positional = tuple(values[0])
        if positional and not named and not isinstance(positional[0], (Mapping, Queryable)):
            table = self._target_table("insert")
            columns = self.db.table_columns(table)
            if columns is not None and len(columns) != len(positional):
                raise ColumnCountError(table, len(columns), len(positional))
        return self.db.execute(self.insert_sql(*values, **named)).lastrowid

    def __lshift__(self, row: Any) -> Dataset:
        self.insert(row)
        return self

    def multi_insert(self, rows: Any, commit_every: int | None = None) -> int:
        """Insert many rows inside a transaction (one per ``commit_every`` rows)."""
        rows = list(rows)
        if commit_every is not None and commit_every < 1:
            raise InvalidOperationError("commit_every must be at least 1")
        size = commit_every or len(rows) or 1
        for start in range(0, len(rows), size):
            with self.db.transaction():
                for row in rows[start : start + size]:
                    self.insert(row)
        return len(rows)

    def update(self, values: Mapping[Any, Any] | None = None, **named: Any) -> int:
        """Update matching rows, return the affected row count."""
        sproc = self._sproc_for("update")
        if sproc is not None:
            if values or named:
                raise InvalidOperationError(
                    f"Stored procedure {sproc.name} takes its arguments from bind() or call(), not update values"
                )
            return run_sproc(self, sproc)
        return self.db.execute(self.update_sql({**(values or {}), **named})).rowcount

    def delete(self) -> int:
        """Delete matching rows, return the affected row count."""
        sproc = self._sproc_for("delete")
        if sproc is not None:
            return run_sproc(self, sproc)
        return self.db.execute(self.delete_sql()).rowcount


# =============================================================================
# HELPERS
# =============================================================================


def _column(value: Any) -> Any:
    return col(value) if isinstance(value, str) else value


def _qualify(value: Any, table: str) -> Any:
    if isinstance(value, str):
        return col(value) if "." in value else Column(value, table)
    return value


def _invert_order(term: Any) -> Ordered:
    if isinstance(term, Ordered):
        return term.invert()
    return Ordered(_column(term), descending=True)


def _field(row: Any, key: str) -> Any:
    return row[key] if isinstance(row, Mapping) else getattr(row, key)


def _compound_member_sql(ds: Dataset) -> str:
    o = ds.opts
    if o.order or o.limit is not None or o.offset or o.compounds:
        return ds.from_self().select_sql()
    return ds.select_sql()


__all__ = [
    "Dataset",
    "DatasetOptions",
    "Join",
    "Compound",
    "JOIN_TYPES",
]
