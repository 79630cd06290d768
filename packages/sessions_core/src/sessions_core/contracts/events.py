"""
Flow Events

Typed, immutable events emitted by flow sessions during one processing turn.
Every event kind the engine can emit is a member of ``AnyEvent``; the
``type`` field is the discriminator used both for parsing and for handler
lookup.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class EventType(str, Enum):
    """Known event types."""

    CONTACT_NAME_CHANGED = "contact_name_changed"
    CONTACT_LANGUAGE_CHANGED = "contact_language_changed"
    CONTACT_STATUS_CHANGED = "contact_status_changed"
    MSG_CREATED = "msg_created"

    def __str__(self) -> str:
        return self.value


class ContactStatus(str, Enum):
    """Status a contact can be moved to by a flow."""

    ACTIVE = "active"
    BLOCKED = "blocked"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlowEvent(BaseModel):
    """Base for all flow events."""

    model_config = ConfigDict(frozen=True)

    type: str
    created_on: datetime = Field(default_factory=_utcnow, description="When the session emitted the event")


class ContactNameChangedEvent(FlowEvent):
    """The contact's name was changed by the flow."""

    type: Literal["contact_name_changed"] = "contact_name_changed"
    name: str = Field(..., max_length=128)


class ContactLanguageChangedEvent(FlowEvent):
    """The contact's language was changed. An empty language clears it."""

    type: Literal["contact_language_changed"] = "contact_language_changed"
    language: str = Field("", max_length=3)


class ContactStatusChangedEvent(FlowEvent):
    type: Literal["contact_status_changed"] = "contact_status_changed"
    status: ContactStatus


class MsgOut(BaseModel):
    """An outgoing message created by the flow."""

    model_config = ConfigDict(frozen=True)

    uuid: UUID
    text: str
    urn: str
    channel_uuid: UUID | None = None


class MsgCreatedEvent(FlowEvent):
    type: Literal["msg_created"] = "msg_created"
    msg: MsgOut


AnyEvent = Annotated[
    Union[
        ContactNameChangedEvent,
        ContactLanguageChangedEvent,
        ContactStatusChangedEvent,
        MsgCreatedEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(AnyEvent)


def parse_event(data: dict[str, Any]) -> FlowEvent:
    """
    Parse a dict (e.g. from a stream message) into its typed event.

    Raises:
        pydantic.ValidationError: unknown type or malformed payload
    """
    return _event_adapter.validate_python(data)
