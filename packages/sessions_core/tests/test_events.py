"""
Tests for event parsing.
"""

from uuid import UUID

import pytest
from pydantic import ValidationError

from sessions_core.contracts.events import (
    ContactLanguageChangedEvent,
    ContactNameChangedEvent,
    ContactStatus,
    ContactStatusChangedEvent,
    MsgCreatedEvent,
    parse_event,
)


class TestParseEvent:

    def test_contact_name_changed(self):
        event = parse_event({"type": "contact_name_changed", "name": "Alice"})

        assert isinstance(event, ContactNameChangedEvent)
        assert event.name == "Alice"
        assert event.created_on is not None

    def test_contact_language_changed_defaults_to_empty(self):
        event = parse_event({"type": "contact_language_changed"})

        assert isinstance(event, ContactLanguageChangedEvent)
        assert event.language == ""

    def test_contact_status_changed(self):
        event = parse_event({"type": "contact_status_changed", "status": "blocked"})

        assert isinstance(event, ContactStatusChangedEvent)
        assert event.status == ContactStatus.BLOCKED

    def test_msg_created(self):
        event = parse_event(
            {
                "type": "msg_created",
                "created_on": "2024-01-01T12:00:00+00:00",
                "msg": {
                    "uuid": "5a0b53e2-5d4b-4a0c-9d6d-1b3c8f6f7e10",
                    "text": "Hi there",
                    "urn": "tel:+12065551212",
                },
            }
        )

        assert isinstance(event, MsgCreatedEvent)
        assert event.msg.uuid == UUID("5a0b53e2-5d4b-4a0c-9d6d-1b3c8f6f7e10")
        assert event.msg.channel_uuid is None
        assert event.created_on.year == 2024

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "flow_entered", "flow": {}})

    def test_malformed_payload_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "contact_status_changed", "status": "deleted"})

    def test_language_too_long_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "contact_language_changed", "language": "english"})

    def test_events_are_immutable(self):
        event = ContactNameChangedEvent(name="Alice")

        with pytest.raises(ValidationError):
            event.name = "Bob"
