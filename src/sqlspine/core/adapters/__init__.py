"""Database drivers -- the one seam between sqlspine and a database engine.

Manifesto:
    The pool, the dataset layer and the migrator only ever see the
    ``Driver`` interface. A concrete engine is a collaborator plugged in by
    URL scheme, so the core can be exercised end to end against the
    in-process ``mock`` driver and the stdlib ``sqlite`` driver.

Architecture::

    Driver (base.py)                 Abstract connect/close/execute + txn statements
        |-- SQLiteDriver             stdlib sqlite3 (always available)
        |-- MockDriver               records SQL, canned rows (tests, dry runs)

    AdapterRegistry (registry.py)    Singleton: scheme -> driver class
    ExecutionResult (base.py)        columns + rows + rowcount + lastrowid

Modules
-------
base            Driver ABC, ExecutionResult, DB-API error translation
registry        AdapterRegistry singleton + register_driver()/get_driver()
sqlite          SQLite driver (stdlib, always available)
mock            Mock driver

Guardrails:
    ❌ ``SQLiteDriver(options)`` directly in application code
    ✅ ``connect("sqlite:///app.db")`` (registry lookup by scheme)

Tags:
    sqlspine, database, drivers, registry-pattern, sqlite, mock

Doc-Types:
    package-overview, module-index
"""

from .base import Driver, ExecutionResult, translate_error
from .mock import MockConnection, MockDriver
from .registry import AdapterRegistry, adapter_registry, get_driver, register_driver
from .sqlite import SQLiteDriver

__all__ = [
    "Driver",
    "ExecutionResult",
    "translate_error",
    "MockDriver",
    "MockConnection",
    "SQLiteDriver",
    "AdapterRegistry",
    "adapter_registry",
    "get_driver",
    "register_driver",
]
