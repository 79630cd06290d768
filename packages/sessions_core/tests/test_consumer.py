"""
Tests for the session batch stream consumer.
"""

import json
from unittest.mock import patch
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy import text

from sessions_core.committer import BatchCommitter, BatchState
from sessions_core.consumer import (
    SessionBatch,
    consume_from_stream,
    parse_batch_message,
    process_stream_message,
    reclaim_pending_messages,
)
from sessions_core.contracts.events import ContactNameChangedEvent, MsgCreatedEvent


@pytest.fixture
def committer(registry, session_factory, redis_client):
    return BatchCommitter(registry, session_factory, redis_client)


def batch_message(contact, batch_id="batch-1", events=None):
    """Stream fields for a batch with one session for ``contact``."""
    if events is None:
        events = [{"type": "contact_name_changed", "name": "Streamed"}]
    return {
        "batch_id": batch_id,
        "org_id": str(contact.org_id),
        "sessions": json.dumps(
            [
                {
                    "id": 100,
                    "contact_id": contact.id,
                    "contact_uuid": str(contact.uuid),
                    "events": events,
                }
            ]
        ),
    }


def contact_name(db, contact_id):
    db.rollback()
    return db.execute(text("SELECT name FROM contacts_contact WHERE id = :id"), {"id": contact_id}).scalar()


class TestParseBatchMessage:

    def test_parses_sessions_and_typed_events(self):
        contact_uuid = uuid4()
        data = {
            "batch_id": "b-1",
            "org_id": "3",
            "sessions": json.dumps(
                [
                    {
                        "id": 1,
                        "contact_id": 10,
                        "contact_uuid": str(contact_uuid),
                        "events": [
                            {"type": "contact_name_changed", "name": "Ann"},
                            {
                                "type": "msg_created",
                                "msg": {"uuid": str(uuid4()), "text": "hi", "urn": "tel:+1"},
                            },
                        ],
                    }
                ]
            ),
        }

        batch = parse_batch_message("1700000000000-0", data)
        sessions = batch.to_sessions()

        assert batch.batch_id == "b-1"
        assert batch.org_id == 3
        assert len(sessions) == 1
        assert sessions[0].org_id == 3
        assert sessions[0].contact_uuid == contact_uuid
        assert isinstance(sessions[0].events[0], ContactNameChangedEvent)
        assert isinstance(sessions[0].events[1], MsgCreatedEvent)

    def test_missing_batch_id_uses_message_id(self):
        batch = parse_batch_message("1700000000000-0", {"org_id": "1", "sessions": "[]"})

        assert batch.batch_id == "1700000000000-0"
        assert batch.sessions == []

    def test_invalid_event_rejected(self):
        data = {
            "org_id": "1",
            "sessions": json.dumps(
                [{"id": 1, "contact_id": 1, "contact_uuid": str(uuid4()), "events": [{"type": "bogus"}]}]
            ),
        }

        with pytest.raises(ValidationError):
            parse_batch_message("1-0", data)

    def test_stream_fields_parse_back(self):
        batch = SessionBatch.model_validate(
            {
                "batch_id": "b-9",
                "org_id": 1,
                "sessions": [
                    {
                        "id": 5,
                        "contact_id": 2,
                        "contact_uuid": str(uuid4()),
                        "events": [{"type": "contact_language_changed", "language": "eng"}],
                    }
                ],
            }
        )

        assert parse_batch_message("1-0", batch.to_stream_fields()) == batch


class TestProcessStreamMessage:

    def test_commits_batch(self, committer, contacts, db):
        ann = contacts[0]

        result = process_stream_message(committer, "1-0", batch_message(ann))

        assert result.state == BatchState.COMMITTED
        assert result.batch_id == "batch-1"
        assert contact_name(db, ann.id) == "Streamed"

    def test_redelivery_is_skipped(self, committer, contacts):
        ann = contacts[0]

        process_stream_message(committer, "1-0", batch_message(ann))
        again = process_stream_message(committer, "1-0", batch_message(ann))

        assert again.state == BatchState.SKIPPED


class TestConsumeFromStream:

    def test_acks_only_committed_batches(self, committer, contacts, db):
        ann, ben, _ = contacts
        failing_events = [
            {"type": "msg_created", "msg": {"uuid": str(uuid4()), "text": "x", "urn": "tel:+1"}},
        ]
        failing = batch_message(ben, batch_id="batch-bad", events=failing_events)
        failing["sessions"] = failing["sessions"].replace(f'"contact_id": {ben.id}', '"contact_id": 9999')

        messages = [
            ("1-0", batch_message(ann, batch_id="batch-ok")),
            ("2-0", {"org_id": "1", "sessions": "not json"}),
            ("3-0", failing),
        ]

        with patch("sessions_core.consumer.read_from_stream", return_value=messages), patch(
            "sessions_core.consumer.ack_message"
        ) as ack:
            count = consume_from_stream(committer, stream_name="s", group_name="g")

        assert count == 1
        acked = [call.args[2] for call in ack.call_args_list]
        assert acked == ["1-0", "2-0"]
        assert contact_name(db, ann.id) == "Streamed"

    def test_empty_read(self, committer):
        with patch("sessions_core.consumer.read_from_stream", return_value=[]):
            assert consume_from_stream(committer) == 0

    def test_reclaims_pending_batches(self, committer, contacts, db):
        ann = contacts[0]
        pending = [{"message_id": "1-0", "consumer": "dead", "idle_ms": 90000, "delivery_count": 1}]

        with patch("sessions_core.consumer.get_pending_messages", return_value=pending), patch(
            "sessions_core.consumer.claim_messages", return_value=[("1-0", batch_message(ann))]
        ) as claim, patch("sessions_core.consumer.ack_message") as ack:
            count = reclaim_pending_messages(committer, stream_name="s", group_name="g", consumer_name="me")

        assert count == 1
        assert claim.call_args.args[:4] == ("s", "g", "me", ["1-0"])
        ack.assert_called_once()
        assert contact_name(db, ann.id) == "Streamed"
