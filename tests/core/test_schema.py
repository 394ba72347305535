"""Tests for the schema DSL (table and ALTER TABLE generators)."""

from __future__ import annotations

import pytest

from sqlspine.core.dialect import get_dialect
from sqlspine.core.errors import InvalidConfigError
from sqlspine.core.expressions import col
from sqlspine.core.literal import Literalizer
from sqlspine.core.schema import AlterTableGenerator, TableGenerator


@pytest.fixture
def lz() -> Literalizer:
    return Literalizer(get_dialect("generic"))


class TestTableGenerator:
    def test_primary_key_rendered_first(self, lz: Literalizer) -> None:
        t = TableGenerator().column("name", str).primary_key("id")
        assert t.column_names() == ["id", "name"]
        assert t.create_sql("items", lz) == [
            "CREATE TABLE items (id integer PRIMARY KEY AUTOINCREMENT, name varchar(255))"
        ]

    def test_column_options(self, lz: Literalizer) -> None:
        t = TableGenerator().column("code", "string", size=12, null=False, default="x", unique=True)
        assert t.create_sql("t", lz) == [
            "CREATE TABLE t (code varchar(12) UNIQUE NOT NULL DEFAULT 'x')"
        ]

    def test_nullable_and_foreign_key(self, lz: Literalizer) -> None:
        t = TableGenerator().foreign_key("owner_id", "users", key="uid", on_delete="set_null", null=True)
        assert t.create_sql("pets", lz) == [
            "CREATE TABLE pets (owner_id integer NULL REFERENCES users(uid) ON DELETE SET NULL)"
        ]

    def test_natural_primary_key(self, lz: Literalizer) -> None:
        t = TableGenerator().primary_key("code", "string", auto_increment=False)
        assert t.create_sql("t", lz) == ["CREATE TABLE t (code varchar(255) PRIMARY KEY)"]

    def test_indexes(self, lz: Literalizer) -> None:
        t = (
            TableGenerator()
            .column("a", int, index=True)
            .column("b", int)
            .unique(["a", "b"], name="ab_unique")
        )
        assert t.create_sql("t", lz) == [
            "CREATE TABLE t (a integer, b integer)",
            "CREATE INDEX t_a_index ON t (a)",
            "CREATE UNIQUE INDEX ab_unique ON t (a, b)",
        ]

    def test_checks(self, lz: Literalizer) -> None:
        t = TableGenerator().column("price", int).check(col("price") >= 0, name="positive").check("price < 100")
        assert t.create_sql("t", lz) == [
            "CREATE TABLE t (price integer, CONSTRAINT positive CHECK (price >= 0), CHECK (price < 100))"
        ]

    def test_if_not_exists(self, lz: Literalizer) -> None:
        sql = TableGenerator().column("a", int).create_sql("t", lz, if_not_exists=True)
        assert sql == ["CREATE TABLE IF NOT EXISTS t (a integer)"]

    def test_dialect_types(self) -> None:
        lz = Literalizer(get_dialect("postgresql"))
        t = TableGenerator().primary_key("id").column("data", "blob").column("at", "datetime")
        assert t.create_sql("t", lz) == ["CREATE TABLE t (id serial PRIMARY KEY, data bytea, at timestamp)"]

    def test_quoted_identifiers(self) -> None:
        lz = Literalizer(get_dialect("generic"), quote_identifiers=True)
        assert TableGenerator().column("order", int).create_sql("select", lz) == [
            'CREATE TABLE "select" ("order" integer)'
        ]

    def test_no_columns(self, lz: Literalizer) -> None:
        with pytest.raises(InvalidConfigError):
            TableGenerator().create_sql("t", lz)

    @pytest.mark.parametrize("options", [{"nullable": True}, {"on_delete": "explode"}])
    def test_bad_options(self, options) -> None:
        with pytest.raises(InvalidConfigError):
            TableGenerator().column("a", int, **options)

    def test_has_column(self) -> None:
        t = TableGenerator().primary_key("id").column("a", int)
        assert t.has_column("id") and t.has_column("a")
        assert not t.has_column("b")


class TestAlterTableGenerator:
    def test_operations(self) -> None:
        lz = Literalizer(get_dialect("postgresql"))
        alter = (
            AlterTableGenerator()
            .add_column("stock", int, default=0, null=False)
            .set_column_default("stock", 5)
            .set_column_type("stock", "bigint")
            .rename_column("stock", "qty")
            .drop_column("qty")
            .add_index("name", name="by_name")
            .drop_index("name", name="by_name")
        )
        assert alter.alter_sql("items", lz) == [
            "ALTER TABLE items ADD COLUMN stock integer NOT NULL DEFAULT 0",
            "ALTER TABLE items ALTER COLUMN stock SET DEFAULT 5",
            "ALTER TABLE items ALTER COLUMN stock TYPE bigint",
            "ALTER TABLE items RENAME COLUMN stock TO qty",
            "ALTER TABLE items DROP COLUMN qty",
            "CREATE INDEX by_name ON items (name)",
            "DROP INDEX by_name",
        ]

    def test_bad_add_column_option(self) -> None:
        with pytest.raises(InvalidConfigError):
            AlterTableGenerator().add_column("a", int, colour="red")
