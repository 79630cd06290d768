"""
Handler Registry

Maps event types to the handler that applies or defers their effect, and hook
names to the hooks that bulk-apply deferred data.

The registry is built once during bootstrap (each feature module registers
itself), frozen, and then shared read-only by every batch. Lookups take no
locks.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import FlowEvent
from sessions_core.exceptions import (
    DuplicateHandlerError,
    DuplicateHookError,
    HandlerNotFoundError,
    HookNotFoundError,
    RegistryFrozenError,
)
from sessions_core.hooks.base import CommitHook
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)

# (ctx, db, redis_client, org, session, event) -> None, raises on error
EventHandler = Callable[[Any, Session, redis.Redis, OrgAssets, FlowSession, FlowEvent], None]


class HandlerRegistry:
    """Event type -> handler and hook name -> hook."""

    def __init__(self):
        self._handlers: dict[str, EventHandler] = {}
        self._hooks: dict[str, CommitHook] = {}
        self._frozen = False

    def register(self, event_type: str, handler: EventHandler) -> None:
        """
        Register the handler for an event type.

        Raises:
            DuplicateHandlerError: a handler is already registered for the type
            RegistryFrozenError: the registry was already frozen
        """
        self._check_not_frozen()
        event_type = str(event_type)

        if event_type in self._handlers:
            raise DuplicateHandlerError(event_type)

        self._handlers[event_type] = handler
        logger.debug(
            "Registered event handler",
            extra={"event_type": event_type, "handler": getattr(handler, "__name__", repr(handler))},
        )

    def register_hook(self, hook: CommitHook) -> None:
        """
        Register a commit hook under its name.

        Registering the same hook object twice is allowed, several handlers
        can defer to one hook.

        Raises:
            DuplicateHookError: another hook already uses the name
        """
        self._check_not_frozen()

        existing = self._hooks.get(hook.name)
        if existing is hook:
            return
        if existing is not None:
            raise DuplicateHookError(hook.name)

        self._hooks[hook.name] = hook

    def lookup(self, event_type: str) -> EventHandler:
        try:
            return self._handlers[str(event_type)]
        except KeyError:
            raise HandlerNotFoundError(str(event_type)) from None

    def lookup_hook(self, name: str) -> CommitHook:
        try:
            return self._hooks[name]
        except KeyError:
            raise HookNotFoundError(name) from None

    def has_handler(self, event_type: str) -> bool:
        return str(event_type) in self._handlers

    def freeze(self) -> "HandlerRegistry":
        """End initialization. Further registration raises."""
        self._frozen = True
        logger.info(
            "Handler registry initialized",
            extra={"handlers": len(self._handlers), "hooks": len(self._hooks)},
        )
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def event_types(self) -> Mapping[str, EventHandler]:
        return MappingProxyType(self._handlers)

    @property
    def hooks(self) -> Mapping[str, CommitHook]:
        return MappingProxyType(self._hooks)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("handler registry is frozen, register during startup only")
