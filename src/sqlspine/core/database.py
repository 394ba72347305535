"""
Database: configuration, the connection pool, SQL execution and transactions.

Manifesto:
    A Database is an explicit value. Nothing in sqlspine reaches for a
    process-wide default connection: datasets, migrators, workers and
    models are all handed the Database they work on.

    - **One pool per Database:** Created at connect time, drained by
      ``disconnect()``
    - **One choke point for SQL:** ``execute()`` logs, times and enriches
      every statement's errors with the SQL and adapter
    - **Reentrant transactions:** Nested ``transaction()`` blocks on the same
      thread join the open transaction (or open a real savepoint when asked)

Architecture:
    ::

        connect("sqlite:///app.db", max_connections=8)
            │  build_options → ConnectionOptions
            │  adapter_registry.create → Driver
            ▼
        Database
        ├── driver        Driver (connect/close/execute/begin/commit/...)
        ├── dialect       capabilities + literal formats
        ├── literalizer   Literalizer(dialect, quote_identifiers)
        ├── pool          ThreadedConnectionPool | SingleThreadedPool
        └── transactions  {caller → Transaction}

        Transaction state machine (per caller):

            OUTSIDE ──BEGIN──► OPEN ──COMMIT────► COMMITTED
                                 │
                                 └──ROLLBACK──► ROLLED_BACK
                                   (exception or ``raise Rollback``)

Examples:
    >>> from sqlspine import connect
    >>> db = connect("mock://")
    >>> with db.transaction():
    ...     db.run("DELETE FROM items")
    >>> db.driver.sqls
    ['BEGIN', 'DELETE FROM items', 'COMMIT']

Tags:
    database, pool, transactions, execution, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlspine.core.adapters import Driver, ExecutionResult, adapter_registry
from sqlspine.core.connection import ConnectionOptions, build_options
from sqlspine.core.errors import DatabaseError, Rollback, SqlSpineError
from sqlspine.core.literal import Literalizer
from sqlspine.core.logging import get_logger
from sqlspine.core.pool import (
    ConnectionPool,
    PooledConnection,
    SingleThreadedPool,
    ThreadedConnectionPool,
    current_caller,
)
from sqlspine.core.schema import AlterTableGenerator, TableGenerator

if TYPE_CHECKING:
    from sqlspine.core.dataset import Dataset
    from sqlspine.core.worker import Worker

logger = get_logger(__name__)


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TransactionState(str, Enum):
    """Lifecycle of one top-level transaction."""

    OUTSIDE = "outside"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(eq=False)
class Transaction:
    """Handle yielded by ``Database.transaction()``."""

    connection: PooledConnection
    caller_id: Any
    state: TransactionState = TransactionState.OUTSIDE
    savepoints: list[str] = field(default_factory=list)

    @property
    def raw(self) -> Any:
        return self.connection.raw

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN


# =============================================================================
# DATABASE
# =============================================================================


class Database:
    """Owns one driver and one connection pool."""

    def __init__(self, options: ConnectionOptions, driver: Driver | None = None):
        self.options = options
        self.driver = driver or adapter_registry.create(options)
        self.dialect = self.driver.dialect
        self.literalizer = Literalizer(self.dialect, bool(options.quote_identifiers))
        self.log_sql = bool(options.log_sql)

        requested = options.max_connections or 1
        max_size = self.driver.pool_size(requested)
        if max_size != requested:
            logger.debug("pool.size_limited", adapter=options.adapter, requested=requested, max_size=max_size)
            self.options = options = replace(options, max_connections=max_size)

        pool_class: type[ConnectionPool]
        pool_class = SingleThreadedPool if options.single_threaded else ThreadedConnectionPool
        self.pool = pool_class(
            self.driver.connect,
            self.driver.close,
            max_size=max_size,
            timeout=options.pool_timeout or 5.0,
        )
        self._transactions: dict[Any, Transaction] = {}
        self._column_cache: dict[str, list[str]] = {}

    def __repr__(self) -> str:
        return f"<Database {self.options!r} pool={self.pool!r}>"

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()

    @property
    def adapter(self) -> str:
        return self.options.adapter

    # -- datasets ------------------------------------------------------------

    def dataset(self) -> Dataset:
        """Dataset with no source, for ``with_sql`` and sourceless selects."""
        from sqlspine.core.dataset import Dataset

        return Dataset(self)

    def from_(self, *tables: Any) -> Dataset:
        return self.dataset().from_(*tables)

    def __getitem__(self, table: str) -> Dataset:
        return self.from_(table)

    def fetch(self, sql: str, *args: Any) -> Dataset:
        """Dataset over fixed SQL; ``?`` placeholders are literalized."""
        return self.dataset().with_sql(sql, *args)

    def literal(self, value: Any) -> str:
        return self.literalizer.literal(value)

    # -- execution -----------------------------------------------------------

    def execute(self, sql: str) -> ExecutionResult:
        """Run one statement on the caller's connection (acquired if needed)."""
        with self.pool.hold() as raw:
            return self.execute_on(raw, sql)

    def execute_on(self, raw: Any, sql: str) -> ExecutionResult:
        """Run one statement on an already-held raw connection."""
        start = time.perf_counter()
        try:
            result = self.driver.execute(raw, sql)
        except SqlSpineError as exc:
            exc.with_context(sql=sql, adapter=self.adapter)
            logger.error(
                "sql.error",
                sql=sql,
                adapter=self.adapter,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            raise
        if self.log_sql:
            logger.debug(
                "sql.execute",
                sql=sql,
                adapter=self.adapter,
                duration_ms=round((time.perf_counter() - start) * 1000, 3),
            )
        return result

    def run(self, sql: str, *args: Any) -> None:
        """Execute SQL for its side effects."""
        self.execute(self.literalizer.interpolate(sql, args))

    def call_sproc(self, name: str, *args: Any) -> ExecutionResult:
        """``CALL name(args...)`` through the driver's procedure hook."""
        sql = self.dialect.call_procedure_sql(name, [self.literal(a) for a in args])
        with self.pool.hold() as raw:
            start = time.perf_counter()
            try:
                result = self.driver.call_procedure(raw, name, sql)
            except SqlSpineError as exc:
                exc.with_context(sql=sql, adapter=self.adapter)
                logger.error("sql.error", sql=sql, adapter=self.adapter, error=exc.message)
                raise
            if self.log_sql:
                logger.debug(
                    "sql.call_procedure",
                    sql=sql,
                    adapter=self.adapter,
                    duration_ms=round((time.perf_counter() - start) * 1000, 3),
                )
            return result

    @contextmanager
    def synchronize(self) -> Iterator[Any]:
        """Hold the caller's connection for the whole block."""
        with self.pool.hold() as raw:
            yield raw

    def test_connection(self) -> bool:
        """Open (or reuse) a connection and ping it."""
        with self.pool.hold() as raw:
            self.driver.ping(raw)
        return True

    def disconnect(self) -> None:
        """Close every idle pooled connection."""
        self.pool.disconnect()

    # -- transactions --------------------------------------------------------

    def in_transaction(self) -> bool:
        txn = self._transactions.get(current_caller())
        return txn is not None and txn.is_open

    def transaction_state(self) -> TransactionState:
        txn = self._transactions.get(current_caller())
        return txn.state if txn is not None else TransactionState.OUTSIDE

    @contextmanager
    def transaction(self, savepoint: bool = False) -> Iterator[Transaction]:
        """Run the block in a transaction on the caller's connection.

        A nested call joins the open transaction. With ``savepoint=True``
        and a dialect that supports it, the nested block gets a real
        ``SAVEPOINT`` instead. ``raise Rollback`` rolls back quietly.
        """
        caller = current_caller()
        current = self._transactions.get(caller)
        if current is not None and current.is_open:
            if savepoint and self.dialect.supports_savepoints:
                with self._savepoint(current) as txn:
                    yield txn
            else:
                yield current
            return

        connection = self.pool.acquire(caller)
        txn = Transaction(connection, caller)
        try:
            self._txn_statement(self.driver.begin, txn, "transaction.begin")
            txn.state = TransactionState.OPEN
            self._transactions[caller] = txn
            try:
                yield txn
            except Rollback:
                self._rollback(txn)
            except BaseException:
                self._rollback(txn)
                raise
            else:
                self._commit(txn)
        finally:
            self._transactions.pop(caller, None)
            self.pool.release(connection, caller)

    @contextmanager
    def _savepoint(self, txn: Transaction) -> Iterator[Transaction]:
        name = f"autopoint_{len(txn.savepoints) + 1}"
        self.driver.savepoint(txn.raw, name)
        txn.savepoints.append(name)
        logger.debug("transaction.savepoint", savepoint=name)
        try:
            yield txn
        except Rollback:
            self.driver.rollback_to_savepoint(txn.raw, name)
        except BaseException:
            self.driver.rollback_to_savepoint(txn.raw, name)
            raise
        else:
            self.driver.release_savepoint(txn.raw, name)
        finally:
            txn.savepoints.pop()

    def _txn_statement(self, statement: Callable[[Any], None], txn: Transaction, event: str) -> None:
        try:
            statement(txn.raw)
        except SqlSpineError as exc:
            exc.with_context(adapter=self.adapter, caller_id=txn.caller_id)
            raise
        logger.debug(event, caller_id=txn.caller_id, connection_id=txn.connection.id)

    def _commit(self, txn: Transaction) -> None:
        try:
            self._txn_statement(self.driver.commit, txn, "transaction.commit")
        except DatabaseError:
            self._rollback(txn)
            raise
        txn.state = TransactionState.COMMITTED

    def _rollback(self, txn: Transaction) -> None:
        txn.state = TransactionState.ROLLED_BACK
        self._txn_statement(self.driver.rollback, txn, "transaction.rollback")

    # -- schema --------------------------------------------------------------

    def tables(self) -> list[str] | None:
        with self.pool.hold() as raw:
            return self.driver.tables(raw)

    def table_exists(self, name: str) -> bool:
        tables = self.tables()
        if tables is not None:
            return name in tables
        try:
            self.execute(f"SELECT NULL FROM {self.literalizer.identifier(name)} WHERE 1 = 0")
        except DatabaseError:
            return False
        return True

    def table_columns(self, name: str) -> list[str] | None:
        """Column names of ``name``, cached until the next DDL on it."""
        if name in self._column_cache:
            return self._column_cache[name]
        with self.pool.hold() as raw:
            columns = self.driver.table_columns(raw, name)
        if columns is not None:
            self._column_cache[name] = columns
        return columns

    def _run_ddl(self, statements: list[str], *tables: str) -> None:
        for table in tables:
            self._column_cache.pop(table, None)
        with self.pool.hold():
            for sql in statements:
                self.execute(sql)

    def create_table(
        self,
        name: str,
        fn: Callable[[TableGenerator], Any] | TableGenerator | None = None,
        *,
        if_not_exists: bool = False,
    ) -> None:
        """Create a table from a generator callback.

        Example:
            >>> db.create_table("items", lambda t: (
            ...     t.primary_key("id"),
            ...     t.column("name", "string", null=False),
            ... ))
        """
        if isinstance(fn, TableGenerator):
            generator = fn
        else:
            generator = TableGenerator()
            if fn is not None:
                fn(generator)
        statements = generator.create_sql(name, self.literalizer, if_not_exists=if_not_exists)
        self._run_ddl(statements, name)
        self._column_cache[name] = generator.column_names()

    def create_table_if_not_exists(self, name: str, fn: Callable[[TableGenerator], Any] | None = None) -> None:
        self.create_table(name, fn, if_not_exists=True)

    def drop_table(self, *names: str, if_exists: bool = False) -> None:
        keyword = "DROP TABLE IF EXISTS" if if_exists else "DROP TABLE"
        self._run_ddl(
            [f"{keyword} {self.literalizer.identifier(n)}" for n in names],
            *names,
        )

    def alter_table(self, name: str, fn: Callable[[AlterTableGenerator], Any]) -> None:
        generator = AlterTableGenerator()
        fn(generator)
        self._run_ddl(generator.alter_sql(name, self.literalizer), name)

    def rename_table(self, name: str, new_name: str) -> None:
        ident = self.literalizer.identifier
        self._run_ddl([f"ALTER TABLE {ident(name)} RENAME TO {ident(new_name)}"], name, new_name)

    def add_column(self, table: str, name: str, type_tag: Any, **options: Any) -> None:
        self.alter_table(table, lambda t: t.add_column(name, type_tag, **options))

    def drop_column(self, table: str, name: str) -> None:
        self.alter_table(table, lambda t: t.drop_column(name))

    def rename_column(self, table: str, name: str, new_name: str) -> None:
        self.alter_table(table, lambda t: t.rename_column(name, new_name))

    def add_index(self, table: str, columns: str | list[str], **options: Any) -> None:
        self.alter_table(table, lambda t: t.add_index(columns, **options))

    def drop_index(self, table: str, columns: str | list[str], name: str | None = None) -> None:
        self.alter_table(table, lambda t: t.drop_index(columns, name=name))

    # -- background work -----------------------------------------------------

    def worker(self, transaction: bool = False) -> Worker:
        """Start a background worker bound to one dedicated connection."""
        from sqlspine.core.worker import Worker

        return Worker(self, transaction=transaction)


def connect(
    target: str | ConnectionOptions | dict[str, Any] | None = None,
    **overrides: Any,
) -> Database:
    """Create a Database from a URL, an options record or a mapping.

    Keyword overrides win over URL values, environment settings
    (``SQLSPINE_*``) fill whatever is left. The returned Database can be
    used as a context manager that disconnects on exit.

    Raises:
        AdapterNotFoundError: No driver is registered for the scheme.
        InvalidConfigError: An option value is invalid.
    """
    options = build_options(target, **overrides)
    db = Database(options)
    logger.debug("database.connected", adapter=options.adapter, dialect=db.dialect.name)
    return db


__all__ = [
    "Database",
    "Transaction",
    "TransactionState",
    "connect",
]
