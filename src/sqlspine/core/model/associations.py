"""Associations loaded on demand.

An association knows how to build the dataset of related rows from the
owner's key values. Loaded results are kept in an ``AssociationCache``
keyed by ``(association name, owner primary key)``, so related objects
never point back at their owner.

==============  =========================================================
``many_to_one``  owner[key] → target primary key (single object or None)
``one_to_many``  target[key] → owner primary key (list)
``many_to_many`` owner pk → join_table[left_key], join_table[right_key]
                 → target primary key (list)
==============  =========================================================
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import InvalidConfigError
from sqlspine.core.expressions import col

if TYPE_CHECKING:
    from sqlspine.core.dataset import Dataset
    from sqlspine.core.model.base import Model

ASSOCIATION_KINDS = ("many_to_one", "one_to_many", "many_to_many")


@dataclass(frozen=True)
class Association:
    kind: str
    name: str
    owner: type[Model]
    target: type[Model] | str
    key: str | None = None
    join_table: str | None = None
    left_key: str | None = None
    right_key: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in ASSOCIATION_KINDS:
            raise InvalidConfigError("association", self.kind, f"Unknown association kind {self.kind!r}")

    @property
    def many(self) -> bool:
        return self.kind != "many_to_one"

    def target_model(self) -> type[Model]:
        if isinstance(self.target, str):
            return self.owner.resolve_model(self.target)
        return self.target

    def dataset(self, owner: Model) -> Dataset:
        """Dataset of the rows related to ``owner``."""
        target = self.target_model()
        if self.kind == "many_to_one":
            key = self.key or f"{self.name}_id"
            return target.where({target.primary_key: owner.values.get(key)})
        if self.kind == "one_to_many":
            key = self.key or f"{_singular(self.owner)}_id"
            return target.where({key: owner.pk})

        join_table = self.join_table or "_".join(sorted((self.owner.table, target.table)))
        left = self.left_key or f"{_singular(self.owner)}_id"
        right = self.right_key or f"{_singular(target)}_id"
        if left == right:
            raise InvalidConfigError(
                "left_key", left, f"Association {self.name} needs distinct left_key and right_key"
            )
        related = target.db[join_table].filter({left: owner.pk}).select(right)
        return target.where(col(target.primary_key).in_(related))

    def load(self, owner: Model) -> Any:
        if self.kind == "many_to_one":
            key = self.key or f"{self.name}_id"
            if owner.values.get(key) is None:
                return None
            return self.dataset(owner).first()
        if owner.pk is None:
            return []
        return self.dataset(owner).all()


class AssociationCache:
    """Loaded associations keyed by ``(name, owner_pk)``."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, Any], Any] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: tuple[str, Any]) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, name: str, owner_pk: Any) -> Any:
        with self._lock:
            return self._entries[(name, owner_pk)]

    def set(self, name: str, owner_pk: Any, value: Any) -> None:
        with self._lock:
            self._entries[(name, owner_pk)] = value

    def invalidate(self, owner_pk: Any = None, name: str | None = None) -> None:
        """Drop entries for one owner, one association, or everything."""
        with self._lock:
            if owner_pk is None and name is None:
                self._entries.clear()
                return
            for key in list(self._entries):
                if (name is None or key[0] == name) and (owner_pk is None or key[1] == owner_pk):
                    del self._entries[key]


class AssociationAccessor:
    """Class attribute that loads the association for an instance."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Model | None, owner: type[Model]) -> Any:
        if instance is None:
            return owner.associations[self.name]
        return instance.association(self.name)


def _singular(model: type[Model]) -> str:
    return model.__name__.lower()


__all__ = ["Association", "AssociationCache", "AssociationAccessor", "ASSOCIATION_KINDS"]
