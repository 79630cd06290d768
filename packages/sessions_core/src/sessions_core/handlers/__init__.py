"""
Event handlers - one module per event type.

Each module exposes ``register(registry)``. ``build_registry`` wires all of
them into a fresh registry during startup; the order modules register in does
not matter.
"""

from sessions_core.handlers import (
    contact_language_changed,
    contact_name_changed,
    contact_status_changed,
    msg_created,
)
from sessions_core.registry import HandlerRegistry

FEATURE_MODULES = (
    contact_name_changed,
    contact_language_changed,
    contact_status_changed,
    msg_created,
)


def build_registry() -> HandlerRegistry:
    """
    Build and freeze the registry with every built-in handler.

    Raises:
        ConfigurationError: two modules claim the same event type or hook name
    """
    registry = HandlerRegistry()
    for module in FEATURE_MODULES:
        module.register(registry)
    return registry.freeze()


__all__ = ["FEATURE_MODULES", "build_registry"]
