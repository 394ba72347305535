"""Schema DSL: table definitions and ALTER TABLE operations → DDL.

``TableGenerator`` collects an ordered list of ``(name, type_tag, options)``
column triples plus indexes and constraints, and ``AlterTableGenerator``
collects ALTER operations. Both render through the Database's
literalizer, so identifiers, defaults and type names follow its dialect.

Column options: ``primary_key``, ``auto_increment``, ``null``, ``default``,
``unique``, plus ``size``, ``references``/``key``/``on_delete`` for
foreign keys and ``index`` to add an index on the column.

Example::

    db.create_table("items", lambda t: (
        t.primary_key("id"),
        t.column("name", "string", null=False, unique=True),
        t.column("price", "decimal", default=0),
        t.foreign_key("category_id", "categories", on_delete="cascade"),
        t.index("name"),
    ))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from sqlspine.core.errors import InvalidConfigError
from sqlspine.core.literal import Literalizer

COLUMN_OPTIONS = frozenset(
    {
        "primary_key",
        "auto_increment",
        "null",
        "default",
        "unique",
        "size",
        "references",
        "key",
        "on_delete",
        "index",
    }
)

ON_DELETE_ACTIONS = {
    "restrict": "RESTRICT",
    "cascade": "CASCADE",
    "set_null": "SET NULL",
    "set_default": "SET DEFAULT",
    "no_action": "NO ACTION",
}


class ColumnSpec(NamedTuple):
    name: str
    type_tag: Any
    options: dict[str, Any]


@dataclass
class IndexSpec:
    columns: list[str]
    unique: bool = False
    name: str | None = None

    def index_name(self, table: str) -> str:
        return self.name or f"{table}_{'_'.join(self.columns)}_index"


def _check_options(options: dict[str, Any]) -> None:
    unknown = set(options) - COLUMN_OPTIONS
    if unknown:
        raise InvalidConfigError(
            "column_options", sorted(unknown), f"Unknown column option(s): {sorted(unknown)}"
        )
    action = options.get("on_delete")
    if action is not None and action not in ON_DELETE_ACTIONS:
        raise InvalidConfigError("on_delete", action)


def column_definition_sql(column: ColumnSpec, lz: Literalizer) -> str:
    """Render one column definition."""
    opts = column.options
    name = lz.identifier(column.name)
    if opts.get("primary_key") and opts.get("auto_increment"):
        return f"{name} {lz.dialect.auto_increment()}"

    type_sql = lz.dialect.column_type(column.type_tag)
    if opts.get("size") is not None:
        type_sql = f"{type_sql.split('(')[0]}({int(opts['size'])})"
    sql = f"{name} {type_sql}"
    if opts.get("unique"):
        sql += " UNIQUE"
    if opts.get("null") is False:
        sql += " NOT NULL"
    elif opts.get("null") is True:
        sql += " NULL"
    if "default" in opts:
        sql += f" DEFAULT {lz.literal(opts['default'])}"
    if opts.get("primary_key"):
        sql += " PRIMARY KEY"
    if opts.get("references"):
        sql += f" REFERENCES {lz.identifier(opts['references'])}"
        if opts.get("key"):
            sql += f"({lz.identifier(opts['key'])})"
        if opts.get("on_delete"):
            sql += f" ON DELETE {ON_DELETE_ACTIONS[opts['on_delete']]}"
    return sql


def index_definition_sql(table: str, index: IndexSpec, lz: Literalizer) -> str:
    unique = "UNIQUE " if index.unique else ""
    columns = ", ".join(lz.identifier(c) for c in index.columns)
    return (
        f"CREATE {unique}INDEX {lz.identifier(index.index_name(table))} "
        f"ON {lz.identifier(table)} ({columns})"
    )


class TableGenerator:
    """Collects the definition of one table."""

    def __init__(self) -> None:
        self.columns: list[ColumnSpec] = []
        self.indexes: list[IndexSpec] = []
        self.checks: list[tuple[str | None, Any]] = []
        self._primary_key: ColumnSpec | None = None

    def column(self, name: str, type_tag: Any, **options: Any) -> TableGenerator:
        _check_options(options)
        self.columns.append(ColumnSpec(name, type_tag, options))
        if options.get("index"):
            self.index(name)
        return self

    def primary_key(
        self,
        name: str,
        type_tag: Any = "integer",
        *,
        auto_increment: bool = True,
        **options: Any,
    ) -> TableGenerator:
        """Declare the primary key. Always rendered as the first column."""
        options = {"primary_key": True, "auto_increment": auto_increment, **options}
        _check_options(options)
        self._primary_key = ColumnSpec(name, type_tag, options)
        return self

    def foreign_key(self, name: str, table: str, type_tag: Any = "integer", **options: Any) -> TableGenerator:
        return self.column(name, type_tag, references=table, **options)

    def index(self, columns: str | list[str], *, unique: bool = False, name: str | None = None) -> TableGenerator:
        cols = [columns] if isinstance(columns, str) else list(columns)
        self.indexes.append(IndexSpec(cols, unique=unique, name=name))
        return self

    def unique(self, columns: str | list[str], name: str | None = None) -> TableGenerator:
        return self.index(columns, unique=True, name=name)

    def check(self, condition: Any, name: str | None = None) -> TableGenerator:
        """``CHECK`` constraint from an expression (or caller-trusted SQL text)."""
        self.checks.append((name, condition))
        return self

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.all_columns())

    def all_columns(self) -> list[ColumnSpec]:
        pk = self._primary_key
        if pk is not None and not any(c.name == pk.name for c in self.columns):
            return [pk, *self.columns]
        return list(self.columns)

    def column_names(self) -> list[str]:
        return [c.name for c in self.all_columns()]

    def create_sql(self, table: str, lz: Literalizer, *, if_not_exists: bool = False) -> list[str]:
        """``CREATE TABLE`` followed by one ``CREATE INDEX`` per index."""
        columns = self.all_columns()
        if not columns:
            raise InvalidConfigError("columns", table, f"Table {table} has no columns")
        parts = [column_definition_sql(c, lz) for c in columns]
        for name, condition in self.checks:
            check = f"({condition})" if isinstance(condition, str) else lz.render(condition)
            prefix = f"CONSTRAINT {lz.identifier(name)} " if name else ""
            parts.append(f"{prefix}CHECK {check}")
        keyword = "CREATE TABLE IF NOT EXISTS" if if_not_exists else "CREATE TABLE"
        statements = [f"{keyword} {lz.identifier(table)} ({', '.join(parts)})"]
        statements.extend(index_definition_sql(table, i, lz) for i in self.indexes)
        return statements


@dataclass
class AlterOperation:
    op: str
    name: str | None = None
    args: dict[str, Any] = field(default_factory=dict)


class AlterTableGenerator:
    """Collects ALTER TABLE operations."""

    def __init__(self) -> None:
        self.operations: list[AlterOperation] = []

    def add_column(self, name: str, type_tag: Any, **options: Any) -> AlterTableGenerator:
        _check_options(options)
        self.operations.append(AlterOperation("add_column", name, {"column": ColumnSpec(name, type_tag, options)}))
        return self

    def drop_column(self, name: str) -> AlterTableGenerator:
        self.operations.append(AlterOperation("drop_column", name))
        return self

    def rename_column(self, name: str, new_name: str) -> AlterTableGenerator:
        self.operations.append(AlterOperation("rename_column", name, {"new_name": new_name}))
        return self

    def set_column_default(self, name: str, default: Any) -> AlterTableGenerator:
        self.operations.append(AlterOperation("set_column_default", name, {"default": default}))
        return self

    def set_column_type(self, name: str, type_tag: Any) -> AlterTableGenerator:
        self.operations.append(AlterOperation("set_column_type", name, {"type_tag": type_tag}))
        return self

    def add_index(self, columns: str | list[str], *, unique: bool = False, name: str | None = None) -> AlterTableGenerator:
        cols = [columns] if isinstance(columns, str) else list(columns)
        self.operations.append(AlterOperation("add_index", name, {"index": IndexSpec(cols, unique, name)}))
        return self

    def drop_index(self, columns: str | list[str], *, name: str | None = None) -> AlterTableGenerator:
        cols = [columns] if isinstance(columns, str) else list(columns)
        self.operations.append(AlterOperation("drop_index", name, {"index": IndexSpec(cols, name=name)}))
        return self

    def alter_sql(self, table: str, lz: Literalizer) -> list[str]:
        return [self._operation_sql(table, op, lz) for op in self.operations]

    def _operation_sql(self, table: str, op: AlterOperation, lz: Literalizer) -> str:
        t = lz.identifier(table)
        if op.op == "add_column":
            return f"ALTER TABLE {t} ADD COLUMN {column_definition_sql(op.args['column'], lz)}"
        if op.op == "drop_column":
            return f"ALTER TABLE {t} DROP COLUMN {lz.identifier(op.name)}"
        if op.op == "rename_column":
            return f"ALTER TABLE {t} RENAME COLUMN {lz.identifier(op.name)} TO {lz.identifier(op.args['new_name'])}"
        if op.op == "set_column_default":
            return f"ALTER TABLE {t} ALTER COLUMN {lz.identifier(op.name)} SET DEFAULT {lz.literal(op.args['default'])}"
        if op.op == "set_column_type":
            return f"ALTER TABLE {t} ALTER COLUMN {lz.identifier(op.name)} TYPE {lz.dialect.column_type(op.args['type_tag'])}"
        if op.op == "add_index":
            return index_definition_sql(table, op.args["index"], lz)
        if op.op == "drop_index":
            return f"DROP INDEX {lz.identifier(op.args['index'].index_name(table))}"
        raise InvalidConfigError("operation", op.op, f"Unsupported ALTER TABLE operation: {op.op}")


__all__ = [
    "ColumnSpec",
    "IndexSpec",
    "TableGenerator",
    "AlterTableGenerator",
    "AlterOperation",
    "column_definition_sql",
    "index_definition_sql",
]
