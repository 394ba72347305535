"""Migration runner.

Tracks applied versions in a ``schema_version`` table and moves the
database to a target version: pending migrations are applied in increasing
order, and migrations above the target are reverted in decreasing order.
Each migration and its bookkeeping row share one transaction.
"""

from __future__ import annotations

import importlib.util
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from sqlspine.core.errors import MigrationConfigError, MigrationError, SqlSpineError
from sqlspine.core.logging import get_logger
from sqlspine.core.migrations.migration import Migration

if TYPE_CHECKING:
    from sqlspine.core.database import Database

logger = get_logger(__name__)

_FILENAME = re.compile(r"^(\d+)_([A-Za-z0-9_]+)\.py$")


@dataclass
class MigrationResult:
    """Result of a migration run."""

    applied: list[int] = field(default_factory=list)
    reverted: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied or self.reverted)


class Migrator:
    """Applies and reverts migrations against one Database.

    Example::

        from sqlspine.core.migrations import Migrator, load_migrations

        migrator = Migrator(db, load_migrations("migrations/"))
        result = migrator.apply()       # everything pending
        migrator.apply(target=2)        # back down to version 2
    """

    def __init__(self, db: Database, migrations: Iterable[Migration], table: str = "schema_version"):
        self.db = db
        self.table = table
        self.migrations = sorted(migrations, key=lambda m: m.version)
        seen: set[int] = set()
        for migration in self.migrations:
            if migration.version in seen:
                raise MigrationConfigError(f"Duplicate migration version {migration.version}")
            seen.add(migration.version)
        self._ensure_version_table()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def applied_versions(self) -> list[int]:
        return sorted(self.db[self.table].map("version"))

    def current_version(self) -> int:
        """Highest applied version, 0 when nothing has been applied."""
        return self.db[self.table].max("version") or 0

    def pending(self) -> list[Migration]:
        applied = set(self.applied_versions())
        return [m for m in self.migrations if m.version not in applied]

    def apply(self, target: int | None = None) -> MigrationResult:
        """Move the schema to ``target`` (default: the latest version).

        Raises:
            MigrationError: A migration failed. Its transaction is rolled
                back and earlier migrations stay applied.
        """
        result = MigrationResult()
        applied = set(self.applied_versions())
        if target is None:
            target = self.migrations[-1].version if self.migrations else 0

        for migration in self.migrations:
            if migration.version > target:
                continue
            if migration.version in applied:
                result.skipped.append(migration.version)
                continue
            self._run(migration, up=True)
            result.applied.append(migration.version)

        for migration in reversed(self.migrations):
            if migration.version <= target or migration.version not in applied:
                continue
            self._run(migration, up=False)
            result.reverted.append(migration.version)

        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_version_table(self) -> None:
        self.db.create_table_if_not_exists(
            self.table,
            lambda t: (
                t.primary_key("version", "integer", auto_increment=False),
                t.column("name", "string"),
                t.column("applied_at", "datetime"),
            ),
        )

    def _run(self, migration: Migration, *, up: bool) -> None:
        versions = self.db[self.table]
        try:
            with self.db.transaction():
                if up:
                    migration.apply_up(self.db)
                    versions.insert(
                        version=migration.version,
                        name=migration.name,
                        applied_at=datetime.now(UTC).replace(tzinfo=None),
                    )
                else:
                    migration.apply_down(self.db)
                    versions.filter(version=migration.version).delete()
        except MigrationError:
            logger.error("migration.failed", migration=migration.label, direction="up" if up else "down")
            raise
        except SqlSpineError as exc:
            logger.error("migration.failed", migration=migration.label, error=exc.message)
            raise MigrationError(
                f"Migration {migration.label} failed: {exc.message}", cause=exc
            ) from exc
        logger.info(
            "migration.applied" if up else "migration.reverted",
            migration=migration.label,
            version=migration.version,
        )


def load_migrations(directory: Path | str) -> list[Migration]:
    """Import ``NNN_name.py`` files exposing ``up``/``down`` or ``change``.

    Raises:
        MigrationConfigError: Two files share a version, or a file mixes
            ``change`` with ``up``/``down``.
    """
    path = Path(directory)
    if not path.exists():
        return []
    migrations: list[Migration] = []
    seen: dict[int, str] = {}
    for file in sorted(path.glob("*.py")):
        match = _FILENAME.match(file.name)
        if match is None:
            continue
        version, name = int(match.group(1)), match.group(2)
        if version in seen:
            raise MigrationConfigError(
                f"Duplicate migration version {version}: {seen[version]} and {file.name}"
            )
        seen[version] = file.name

        spec = importlib.util.spec_from_file_location(f"sqlspine_migration_{version}_{name}", file)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        migrations.append(
            Migration(
                version,
                name,
                up=getattr(module, "up", None),
                down=getattr(module, "down", None),
                change=getattr(module, "change", None),
            )
        )
    return migrations


__all__ = ["Migrator", "MigrationResult", "load_migrations"]
