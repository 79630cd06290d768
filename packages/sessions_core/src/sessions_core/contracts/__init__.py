"""Event contracts - typed events and org assets."""

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import (
    AnyEvent,
    ContactLanguageChangedEvent,
    ContactNameChangedEvent,
    ContactStatusChangedEvent,
    EventType,
    FlowEvent,
    MsgCreatedEvent,
    parse_event,
)

__all__ = [
    "AnyEvent",
    "ContactLanguageChangedEvent",
    "ContactNameChangedEvent",
    "ContactStatusChangedEvent",
    "EventType",
    "FlowEvent",
    "MsgCreatedEvent",
    "OrgAssets",
    "parse_event",
]
