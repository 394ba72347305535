"""
Model: row objects over a Dataset, configured once at class definition.

Manifesto:
    A model class is a thin collaborator on top of the dataset layer. It
    gets its Database injected at definition time (no global ``DB``),
    configures itself through plugins that run exactly once, and keeps
    related rows in an association cache keyed by foreign-key values
    instead of object back-pointers.

Architecture:
    ::

        class Item(Model, db=db, table="items", plugins={"timestamps": {}}):
            @classmethod
            def define(cls, b):
                b.many_to_one("category", "Category")

        __init_subclass__
          ├── LifecycleEvents copied from the parent class
          ├── associations / dataset defaults copied from the parent
          ├── for name, config in plugins: get_plugin(name)(builder, config)
          └── cls.define(builder)       (when the class declares one)

        item.save()  ──► transaction:
                           before_save → before_create|before_update
                           INSERT | UPDATE
                           after_create|after_update → after_save

Examples:
    >>> item = Item.create(name="widget", price=3)
    >>> Item[item.pk].name
    'widget'
    >>> item.category            # loaded on first access, then cached
    <Category id=1>

Tags:
    model, orm, hooks, plugins, associations, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlspine.core.errors import HookFailedError, InvalidConfigError, InvalidOperationError
from sqlspine.core.logging import get_logger
from sqlspine.core.model.associations import Association, AssociationCache
from sqlspine.core.model.hooks import LifecycleEvents
from sqlspine.core.model.plugins import ModelBuilder

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlspine.core.database import Database
    from sqlspine.core.dataset import Dataset

logger = get_logger(__name__)


class ModelMeta(type):
    """Adds ``Model[pk]`` lookup."""

    def __getitem__(cls, pk: Any) -> Any:
        return cls.dataset().first({cls.primary_key: pk})


class Model(metaclass=ModelMeta):
    """Base class for row objects. Subclass with ``db=`` and ``table=``."""

    db: ClassVar[Database | None] = None
    table: ClassVar[str | None] = None
    primary_key: ClassVar[str] = "id"
    events: ClassVar[LifecycleEvents] = LifecycleEvents()
    associations: ClassVar[dict[str, Association]] = {}
    association_cache: ClassVar[AssociationCache] = AssociationCache()
    dataset_defaults: ClassVar[list[Callable[[Dataset], Dataset]]] = []
    registry: ClassVar[dict[str, type[Model]]] = {}

    def __init_subclass__(
        cls,
        db: Database | None = None,
        table: str | None = None,
        primary_key: str | None = None,
        plugins: dict[str, dict[str, Any] | None] | None = None,
        **kwargs: Any,
    ):
        super().__init_subclass__(**kwargs)
        if db is not None:
            cls.db = db
        cls.table = table or cls.__dict__.get("table") or f"{cls.__name__.lower()}s"
        if primary_key is not None:
            cls.primary_key = primary_key

        cls.events = LifecycleEvents(cls.events)
        cls.associations = dict(cls.associations)
        cls.association_cache = AssociationCache()
        cls.dataset_defaults = list(cls.dataset_defaults)

        builder = ModelBuilder(cls)
        for name, config in (plugins or {}).items():
            builder.apply(name, config)
        if "define" in cls.__dict__:
            cls.define(builder)
        Model.registry[cls.__name__] = cls
        logger.debug("model.defined", model=cls.__name__, table=cls.table, plugins=builder.plugins)

    def __init__(self, values: dict[str, Any] | None = None, **named: Any):
        object.__setattr__(self, "values", {**(values or {}), **named})
        object.__setattr__(self, "_new", True)

    # -- class-level access ----------------------------------------------------

    @classmethod
    def resolve_model(cls, name: str) -> type[Model]:
        if name not in Model.registry:
            raise InvalidConfigError("model", name, f"Unknown model {name!r}")
        return Model.registry[name]

    @classmethod
    def require_db(cls) -> Database:
        if cls.db is None:
            raise InvalidOperationError(f"Model {cls.__name__} has no database")
        return cls.db

    @classmethod
    def table_dataset(cls) -> Dataset:
        """Plain dataset over the table (no defaults, rows are dicts)."""
        return cls.require_db()[cls.table]

    @classmethod
    def dataset(cls) -> Dataset:
        """Dataset yielding model instances."""
        ds = cls.table_dataset().with_row_proc(cls.load)
        for transform in cls.dataset_defaults:
            ds = transform(ds)
        return ds

    @classmethod
    def load(cls, row: dict[str, Any]) -> Model:
        instance = cls.__new__(cls)
        object.__setattr__(instance, "values", dict(row))
        object.__setattr__(instance, "_new", False)
        return instance

    @classmethod
    def where(cls, *conds: Any, **named: Any) -> Dataset:
        return cls.dataset().filter(*conds, **named)

    @classmethod
    def all(cls) -> list[Model]:
        return cls.dataset().all()

    @classmethod
    def first(cls, *conds: Any, **named: Any) -> Model | None:
        return cls.dataset().first(*conds, **named)

    @classmethod
    def count(cls) -> int:
        return cls.dataset().count()

    @classmethod
    def create(cls, values: dict[str, Any] | None = None, **named: Any) -> Model:
        return cls(values, **named).save()

    # -- instance --------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.values[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} has no column {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self.values[name] = value

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.values[name] = value

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        if self.pk is None:
            return self is other
        return self.pk == other.pk

    def __hash__(self) -> int:
        return hash((type(self), self.pk)) if self.pk is not None else id(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.primary_key}={self.pk!r}>"

    @property
    def pk(self) -> Any:
        return self.values.get(self.primary_key)

    @property
    def new(self) -> bool:
        return self._new

    def set(self, **values: Any) -> Model:
        self.values.update(values)
        return self

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)

    def association(self, name: str, reload: bool = False) -> Any:
        """Related row(s) for ``name``, cached by ``(name, pk)``."""
        cls = type(self)
        if name not in cls.associations:
            raise InvalidOperationError(f"{cls.__name__} has no association {name!r}")
        association = cls.associations[name]
        key = (name, self.pk)
        if self.pk is not None and not reload and key in cls.association_cache:
            return cls.association_cache.get(name, self.pk)
        value = association.load(self)
        if self.pk is not None:
            cls.association_cache.set(name, self.pk, value)
        return value

    def _before(self, event: str, action: str) -> None:
        if not type(self).events.run(event, self):
            raise HookFailedError(f"{event} hook stopped {action} of {type(self).__name__}")

    def save(self) -> Model:
        """Insert or update inside a transaction, running the hook chains.

        Raises:
            HookFailedError: A ``before_*`` hook returned ``STOP``. The
                transaction is rolled back.
        """
        cls = type(self)
        events = cls.events
        creating = self._new
        had_pk = self.primary_key in self.values
        pk_before = self.pk
        try:
            with cls.require_db().transaction():
                self._before("before_save", "save")
                if creating:
                    self._before("before_create", "create")
                    self._insert()
                    events.run("after_create", self)
                else:
                    self._before("before_update", "update")
                    self._update()
                    events.run("after_update", self)
                events.run("after_save", self)
        except Exception:
            if creating:
                # The INSERT was rolled back: the instance is unsaved again.
                self._new = True
                if had_pk:
                    self.values[self.primary_key] = pk_before
                else:
                    self.values.pop(self.primary_key, None)
            raise
        cls.association_cache.invalidate(self.pk)
        return self

    def _insert(self) -> None:
        pk = self.primary_key
        values = {k: v for k, v in self.values.items() if not (k == pk and v is None)}
        row_id = type(self).table_dataset().insert(values)
        if self.values.get(pk) is None and row_id is not None:
            self.values[pk] = row_id
        self._new = False

    def _update(self) -> None:
        changes = {k: v for k, v in self.values.items() if k != self.primary_key}
        if changes:
            self._this().update(changes)

    def _this(self) -> Dataset:
        if self.pk is None:
            raise InvalidOperationError(f"{type(self).__name__} has no primary key value")
        return type(self).table_dataset().filter({self.primary_key: self.pk})

    def destroy(self) -> Model:
        cls = type(self)
        with cls.require_db().transaction():
            self._before("before_destroy", "destroy")
            self._this().delete()
            cls.events.run("after_destroy", self)
        cls.association_cache.invalidate(self.pk)
        return self

    def refresh(self) -> Model:
        """Reload column values from the database."""
        row = self._this().naked().first()
        if row is None:
            raise InvalidOperationError(f"{type(self).__name__} {self.pk!r} no longer exists")
        self.values.clear()
        self.values.update(row)
        type(self).association_cache.invalidate(self.pk)
        return self


__all__ = ["Model", "ModelMeta"]
