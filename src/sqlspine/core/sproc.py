"""Stored procedure datasets.

A dataset prepared with ``prepare_sproc(kind, name)`` carries a
``StoredProcedure`` option. Its execution method for ``kind`` skips the
SQL renderer and issues ``CALL name(args...)`` instead; every other
method behaves like the plain dataset. The prepared dataset is reusable:
``call(*args)`` binds fresh arguments on each invocation.

Example::

    sp = db["items"].prepare_sproc("select", "items_over")
    sp.call(10)        # → rows of CALL items_over(10)
    sp.call(20)        # same dataset, new arguments
    sp.bind(5).first() # → first row of CALL items_over(5)

Kinds and what ``call`` returns:

==========  ==================================================
``select``  list of row dicts
``first``   first row dict or ``None``
``insert``  ``lastrowid`` reported by the driver
``update``  affected row count
``delete``  affected row count
==========  ==================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import InvalidOperationError

if TYPE_CHECKING:
    from sqlspine.core.dataset import Dataset

SPROC_KINDS = ("select", "first", "insert", "update", "delete")
ROW_KINDS = ("select", "first")


@dataclass(frozen=True)
class StoredProcedure:
    """Procedure name, the operation it stands in for and its bound args."""

    kind: str
    name: str
    args: tuple = ()

    def __post_init__(self) -> None:
        if self.kind not in SPROC_KINDS:
            raise InvalidOperationError(
                f"Unsupported stored procedure kind {self.kind!r}, expected one of {SPROC_KINDS}"
            )

    def bind(self, *args: Any) -> StoredProcedure:
        return replace(self, args=args)

    def handles(self, kind: str) -> bool:
        if kind in ROW_KINDS:
            return self.kind in ROW_KINDS
        return self.kind == kind


def run_sproc(dataset: Dataset, sproc: StoredProcedure, kind: str | None = None) -> Any:
    """Execute ``sproc`` on ``dataset``'s Database and decode per ``kind``.

    ``kind`` defaults to the kind the procedure was prepared for.
    """
    kind = kind or sproc.kind
    result = dataset.db.call_sproc(sproc.name, *sproc.args)
    if kind in ROW_KINDS:
        rows = [dataset.decode(result.columns, row) for row in result.rows]
        if kind == "first":
            return rows[0] if rows else None
        return rows
    if kind == "insert":
        return result.lastrowid
    return result.rowcount


__all__ = ["StoredProcedure", "SPROC_KINDS", "run_sproc"]
