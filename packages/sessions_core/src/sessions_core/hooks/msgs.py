"""
Commit hooks for messages created by flows.

Messages are inserted inside the batch transaction and only handed to the
outgoing queue in Redis after the batch commits, so a rolled back batch never
sends anything.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import redis
from sqlalchemy.orm import Session

from flowbase.redis import redis_connection
from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import MsgCreatedEvent
from sessions_core.hooks.base import CommitHook
from sessions_core.persistence.bulk import bulk_insert
from sessions_core.persistence.models import Msg, MsgDirection, MsgStatus

if TYPE_CHECKING:
    from sessions_core.committer import BatchContext
    from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


@dataclass
class MsgInsert:
    uuid: UUID
    org_id: int
    contact_id: int
    session_id: int
    text: str
    urn: str
    channel_uuid: UUID | None
    direction: str
    status: str
    created_on: datetime


def outgoing_queue_key(org_id: int) -> str:
    """Redis list holding an org's messages waiting to be sent."""
    return f"msgs:{org_id}:outgoing"


class CommitMessagesHook(CommitHook):
    """
    Inserts every message created in the batch with one bulk insert.

    Append-only: every queued message is written, in session order and then
    submission order within each session.
    """

    name = "commit_messages"

    def apply(
        self,
        ctx: BatchContext,
        db: Session,
        redis_client: redis.Redis,
        org: OrgAssets,
        sessions: dict[FlowSession, list[Any]],
    ) -> None:
        inserts = []
        for session, events in sessions.items():
            for event in events:
                inserts.append(_msg_insert(session, event))

        bulk_insert(db, "inserting msgs", Msg.__table__, inserts)


class QueueMessagesHook(CommitHook):
    """
    Post-commit: pushes committed messages onto the org's outgoing queue.

    Append-only, one pipeline round trip for the whole batch.
    """

    name = "queue_messages"

    def apply(
        self,
        ctx: BatchContext,
        db: Session,
        redis_client: redis.Redis,
        org: OrgAssets,
        sessions: dict[FlowSession, list[Any]],
    ) -> None:
        key = outgoing_queue_key(org.org_id)
        queued = 0

        with redis_connection(redis_client) as pipe:
            for session, events in sessions.items():
                for event in events:
                    pipe.rpush(key, json.dumps(_queue_payload(session, event)))
                    queued += 1

        logger.debug("Queued msgs for sending", extra={"org_id": org.org_id, "count": queued})


def _msg_insert(session: FlowSession, event: MsgCreatedEvent) -> MsgInsert:
    return MsgInsert(
        uuid=event.msg.uuid,
        org_id=session.org_id,
        contact_id=session.contact_id,
        session_id=session.id,
        text=event.msg.text,
        urn=event.msg.urn,
        channel_uuid=event.msg.channel_uuid,
        direction=MsgDirection.OUTGOING.value,
        status=MsgStatus.QUEUED.value,
        created_on=event.created_on,
    )


def _queue_payload(session: FlowSession, event: MsgCreatedEvent) -> dict[str, Any]:
    return {
        "uuid": str(event.msg.uuid),
        "contact_id": session.contact_id,
        "contact_uuid": str(session.contact_uuid),
        "urn": event.msg.urn,
        "text": event.msg.text,
        "channel_uuid": str(event.msg.channel_uuid) if event.msg.channel_uuid else None,
    }


commit_messages = CommitMessagesHook()
queue_messages = QueueMessagesHook()
