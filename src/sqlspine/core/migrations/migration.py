"""Migration definitions and ``change`` inversion.

A migration is either an ``up``/``down`` pair or a single ``change``
function. Each function receives the Database. For ``change`` migrations
the backward direction is synthesized: ``change`` is replayed against a
recorder that captures schema operations without running them, and the
inverse of each captured operation is applied in reverse order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import IrreversibleMigrationError, MigrationConfigError

if TYPE_CHECKING:
    from sqlspine.core.database import Database

MigrationFn = Callable[["Database"], Any]


@dataclass(frozen=True)
class Migration:
    """One versioned schema change.

    Raises:
        MigrationConfigError: ``change`` is mixed with ``up``/``down``, or
            neither style is given.
    """

    version: int
    name: str = ""
    up: MigrationFn | None = None
    down: MigrationFn | None = None
    change: MigrationFn | None = None

    def __post_init__(self) -> None:
        if self.change is not None and (self.up is not None or self.down is not None):
            raise MigrationConfigError(
                f"Migration {self.version} ({self.name}) mixes change with up/down"
            )
        if self.change is None and self.up is None:
            raise MigrationConfigError(
                f"Migration {self.version} ({self.name}) defines neither change nor up"
            )
        if not isinstance(self.version, int) or self.version < 1:
            raise MigrationConfigError(f"Migration version must be a positive integer, got {self.version!r}")

    @property
    def label(self) -> str:
        return f"{self.version:03d}_{self.name}" if self.name else str(self.version)

    def apply_up(self, db: Database) -> None:
        if self.change is not None:
            self.change(db)
        else:
            self.up(db)

    def apply_down(self, db: Database) -> None:
        if self.change is not None:
            recorder = ChangeRecorder()
            self.change(recorder)
            recorder.revert(db)
        elif self.down is not None:
            self.down(db)
        else:
            raise IrreversibleMigrationError(f"Migration {self.label} has no down operation")


@dataclass(frozen=True)
class RecordedOperation:
    name: str
    args: tuple
    kwargs: dict


class ChangeRecorder:
    """Stands in for a Database while a ``change`` function runs.

    Only reversible schema operations are available. Touching anything
    else raises ``IrreversibleMigrationError``.
    """

    REVERSIBLE = (
        "create_table",
        "create_table_if_not_exists",
        "add_column",
        "add_index",
        "rename_table",
        "rename_column",
    )

    def __init__(self) -> None:
        self.operations: list[RecordedOperation] = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self.REVERSIBLE:
            raise IrreversibleMigrationError(f"Cannot reverse {name!r} in a change migration")

        def record(*args: Any, **kwargs: Any) -> None:
            self.operations.append(RecordedOperation(name, args, kwargs))

        return record

    def revert(self, db: Database) -> None:
        for op in reversed(self.operations):
            _invert(op, db)


def _invert(op: RecordedOperation, db: Database) -> None:
    args, kwargs = op.args, op.kwargs
    if op.name == "create_table":
        db.drop_table(args[0])
    elif op.name == "create_table_if_not_exists":
        db.drop_table(args[0], if_exists=True)
    elif op.name == "add_column":
        db.drop_column(args[0], args[1])
    elif op.name == "add_index":
        db.drop_index(args[0], args[1], name=kwargs.get("name"))
    elif op.name == "rename_table":
        db.rename_table(args[1], args[0])
    elif op.name == "rename_column":
        db.rename_column(args[0], args[2], args[1])


__all__ = ["Migration", "ChangeRecorder", "RecordedOperation", "MigrationFn"]
