"""Versioned schema migrations for sqlspine.

Manifesto:
    Schemas must evolve the same way on every deployment. Migrations are
    plain Python functions that receive the Database, identified by a
    monotonic version, and the applied versions live in the database
    itself (``schema_version``) so re-running is always a no-op.

Modules
-------
migration  Migration (up/down or reversible change) and ChangeRecorder
runner     Migrator.apply(target) / load_migrations(directory)

Tags:
    sqlspine, migrations, schema, database, idempotent, DDL

Doc-Types:
    package-overview
"""

from sqlspine.core.migrations.migration import ChangeRecorder, Migration
from sqlspine.core.migrations.runner import MigrationResult, Migrator, load_migrations

__all__ = ["Migration", "ChangeRecorder", "Migrator", "MigrationResult", "load_migrations"]
