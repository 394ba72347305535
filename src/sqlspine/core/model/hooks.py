"""Lifecycle hook chains.

Each model class owns a ``LifecycleEvents`` object: one ordered list of
callbacks per event, run in registration order. A callback that returns
``STOP`` ends its chain. For ``before_*`` events the model then refuses the
action with ``HookFailedError``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlspine.core.errors import InvalidConfigError
from sqlspine.core.logging import get_logger

logger = get_logger(__name__)

HOOK_EVENTS = (
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "before_save",
    "after_save",
    "before_destroy",
    "after_destroy",
)

Hook = Callable[[Any], Any]


class _Stop:
    __slots__ = ()

    def __repr__(self) -> str:
        return "STOP"


STOP = _Stop()


class LifecycleEvents:
    """Ordered callback chains, copied from the parent class on subclassing."""

    def __init__(self, parent: LifecycleEvents | None = None):
        self._chains: dict[str, list[Hook]] = {
            event: list(parent._chains[event]) if parent is not None else []
            for event in HOOK_EVENTS
        }

    def __repr__(self) -> str:
        counts = {e: len(c) for e, c in self._chains.items() if c}
        return f"<LifecycleEvents {counts}>"

    def register(self, event: str, hook: Hook) -> Hook:
        if event not in self._chains:
            raise InvalidConfigError("event", event, f"Unknown lifecycle event {event!r}")
        self._chains[event].append(hook)
        return hook

    def hooks(self, event: str) -> list[Hook]:
        return list(self._chains[event])

    def run(self, event: str, instance: Any) -> bool:
        """Run the chain. ``False`` when a hook returned ``STOP``."""
        for hook in self._chains[event]:
            if hook(instance) is STOP:
                logger.debug(
                    "model.hook_stopped",
                    model_event=event,
                    hook=getattr(hook, "__name__", repr(hook)),
                )
                return False
        return True


__all__ = ["LifecycleEvents", "STOP", "HOOK_EVENTS", "Hook"]
