"""Model plugins and the builder they configure.

A plugin is a named setup function ``setup(builder, config)``. It runs once,
while the model class is being defined, and extends the class only through
the ``ModelBuilder``: hooks, associations, dataset defaults and methods.
Nothing is patched at call time.

Example::

    def soft_delete(builder, config):
        column = config.get("column", "deleted_at")
        builder.dataset_default(lambda ds: ds.filter({column: None}))

    register_plugin("soft_delete", soft_delete)

    class Post(Model, db=db, plugins={"soft_delete": {}}):
        pass
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlspine.core.errors import InvalidConfigError
from sqlspine.core.model.associations import Association, AssociationAccessor
from sqlspine.core.model.hooks import Hook

if TYPE_CHECKING:
    from sqlspine.core.dataset import Dataset
    from sqlspine.core.model.base import Model

PluginSetup = Callable[["ModelBuilder", dict[str, Any]], None]


# =============================================================================
# BUILDER
# =============================================================================


class ModelBuilder:
    """Mutable view of a model class, valid only while it is being defined."""

    def __init__(self, model: type[Model]):
        self.model = model
        self.plugins: list[str] = []

    def __repr__(self) -> str:
        return f"<ModelBuilder {self.model.__name__}>"

    def hook(self, event: str, fn: Hook) -> Hook:
        return self.model.events.register(event, fn)

    def before_save(self, fn: Hook) -> Hook:
        return self.hook("before_save", fn)

    def after_save(self, fn: Hook) -> Hook:
        return self.hook("after_save", fn)

    def before_create(self, fn: Hook) -> Hook:
        return self.hook("before_create", fn)

    def before_update(self, fn: Hook) -> Hook:
        return self.hook("before_update", fn)

    def before_destroy(self, fn: Hook) -> Hook:
        return self.hook("before_destroy", fn)

    def _associate(self, kind: str, name: str, target: Any, **options: Any) -> Association:
        if name in self.model.associations:
            raise InvalidConfigError("association", name, f"Association {name!r} already defined")
        association = Association(kind, name, self.model, target, **options)
        self.model.associations[name] = association
        setattr(self.model, name, AssociationAccessor(name))
        return association

    def many_to_one(self, name: str, target: Any, *, key: str | None = None) -> Association:
        return self._associate("many_to_one", name, target, key=key)

    def one_to_many(self, name: str, target: Any, *, key: str | None = None) -> Association:
        return self._associate("one_to_many", name, target, key=key)

    def many_to_many(
        self,
        name: str,
        target: Any,
        *,
        join_table: str | None = None,
        left_key: str | None = None,
        right_key: str | None = None,
    ) -> Association:
        return self._associate(
            "many_to_many",
            name,
            target,
            join_table=join_table,
            left_key=left_key,
            right_key=right_key,
        )

    def dataset_default(self, fn: Callable[[Dataset], Dataset]) -> None:
        """Transform applied to every dataset the model builds."""
        self.model.dataset_defaults.append(fn)

    def method(self, name: str, fn: Callable[..., Any]) -> None:
        if name in self.model.__dict__:
            raise InvalidConfigError("method", name, f"{self.model.__name__}.{name} already defined")
        setattr(self.model, name, fn)

    def apply(self, name: str, config: dict[str, Any] | None = None) -> None:
        get_plugin(name)(self, dict(config or {}))
        self.plugins.append(name)


# =============================================================================
# REGISTRY
# =============================================================================


class PluginRegistry:
    def __init__(self) -> None:
        self._plugins: dict[str, PluginSetup] = {}

    def register(self, name: str, setup: PluginSetup) -> None:
        self._plugins[name] = setup

    def get(self, name: str) -> PluginSetup:
        if name not in self._plugins:
            raise InvalidConfigError(
                "plugin", name, f"Unknown model plugin {name!r}. Available: {sorted(self._plugins)}"
            )
        return self._plugins[name]

    def list_plugins(self) -> list[str]:
        return sorted(self._plugins)


plugin_registry = PluginRegistry()


def register_plugin(name: str, setup: PluginSetup) -> PluginSetup:
    plugin_registry.register(name, setup)
    return setup


def get_plugin(name: str) -> PluginSetup:
    return plugin_registry.get(name)


# =============================================================================
# BUILT-IN PLUGINS
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def timestamps(builder: ModelBuilder, config: dict[str, Any]) -> None:
    """Fill ``created_at``/``updated_at`` on save.

    Config keys: ``create`` and ``update`` (column names), ``update_on_create``
    (also set the update column on insert), ``clock`` (zero-arg callable).
    """
    create_column = config.get("create", "created_at")
    update_column = config.get("update", "updated_at")
    on_create = config.get("update_on_create", False)
    clock = config.get("clock", _utcnow)

    def stamp_create(instance: Model) -> None:
        now = clock()
        if instance.values.get(create_column) is None:
            instance.values[create_column] = now
        if on_create:
            instance.values[update_column] = now

    def stamp_update(instance: Model) -> None:
        instance.values[update_column] = clock()

    builder.hook("before_create", stamp_create)
    builder.hook("before_update", stamp_update)


register_plugin("timestamps", timestamps)


__all__ = [
    "ModelBuilder",
    "PluginRegistry",
    "plugin_registry",
    "register_plugin",
    "get_plugin",
    "timestamps",
    "PluginSetup",
]
