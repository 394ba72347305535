"""Row-object layer on top of datasets.

Modules
-------
base          Model, class-definition-time configuration and CRUD
hooks         LifecycleEvents and the STOP sentinel
plugins       ModelBuilder, plugin registry, built-in ``timestamps``
associations  many_to_one / one_to_many / many_to_many + AssociationCache

Tags:
    sqlspine, model, orm

Doc-Types:
    package-overview
"""

from sqlspine.core.model.associations import Association, AssociationCache
from sqlspine.core.model.base import Model
from sqlspine.core.model.hooks import HOOK_EVENTS, STOP, LifecycleEvents
from sqlspine.core.model.plugins import ModelBuilder, get_plugin, plugin_registry, register_plugin

__all__ = [
    "Model",
    "ModelBuilder",
    "LifecycleEvents",
    "STOP",
    "HOOK_EVENTS",
    "Association",
    "AssociationCache",
    "register_plugin",
    "get_plugin",
    "plugin_registry",
]
