"""Driver registry and factory.

Manifesto:
    Consumers should never hard-code driver class names. The registry
    maps connection-string schemes to driver classes and ``create()``
    builds a configured driver from a parsed ``ConnectionOptions``.

Features:
    - ``AdapterRegistry`` singleton with pre-registered defaults
    - ``register_driver()`` for custom / third-party engines
    - ``get_driver()`` lookup: scheme → driver class

Tags:
    sqlspine, database, registry, factory, singleton

Doc-Types:
    api-reference
"""

from __future__ import annotations

from sqlspine.core.connection import ConnectionOptions
from sqlspine.core.errors import AdapterNotFoundError

from .base import Driver
from .mock import MockDriver
from .sqlite import SQLiteDriver


class AdapterRegistry:
    """
    Registry for driver classes, keyed by URL scheme.

    Pre-registered drivers:
    - ``sqlite``: :class:`SQLiteDriver`
    - ``mock``: :class:`MockDriver`
    """

    def __init__(self):
        self._factories: dict[str, type[Driver]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        """Register default drivers."""
        self._factories["sqlite"] = SQLiteDriver
        self._factories["mock"] = MockDriver

    def register(self, scheme: str, driver_class: type[Driver]) -> None:
        """Register a driver class for a scheme."""
        self._factories[scheme.lower()] = driver_class

    def unregister(self, scheme: str) -> None:
        self._factories.pop(scheme.lower(), None)

    def get(self, scheme: str) -> type[Driver]:
        """Driver class for ``scheme`` (raises ``AdapterNotFoundError``)."""
        try:
            return self._factories[scheme.lower()]
        except KeyError:
            raise AdapterNotFoundError(scheme) from None

    def create(self, options: ConnectionOptions) -> Driver:
        """Create a driver for the options' adapter scheme."""
        return self.get(options.adapter)(options)

    def list_adapters(self) -> list[str]:
        """List registered schemes."""
        return sorted(self._factories.keys())


# Global registry
adapter_registry = AdapterRegistry()


def register_driver(scheme: str, driver_class: type[Driver]) -> None:
    """
    Make ``scheme://`` URLs use ``driver_class``.

    Usage:
        register_driver("duck", DuckDriver)
        db = connect("duck:///tmp/analytics.db")
    """
    adapter_registry.register(scheme, driver_class)


def get_driver(scheme: str) -> type[Driver]:
    """Look up the driver class registered for ``scheme``."""
    return adapter_registry.get(scheme)


__all__ = [
    "AdapterRegistry",
    "adapter_registry",
    "register_driver",
    "get_driver",
]
