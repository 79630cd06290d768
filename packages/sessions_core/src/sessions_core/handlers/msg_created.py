import logging

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import EventType, MsgCreatedEvent
from sessions_core.hooks.msgs import commit_messages, queue_messages
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


def handle_msg_created(
    ctx,
    db: Session,
    redis_client: redis.Redis,
    org: OrgAssets,
    session: FlowSession,
    event: MsgCreatedEvent,
) -> None:
    """Inserts the msg with the batch and queues it for sending after commit."""
    logger.debug(
        "msg created",
        extra={
            "contact_uuid": str(session.contact_uuid),
            "session_id": session.id,
            "msg_uuid": str(event.msg.uuid),
            "urn": event.msg.urn,
        },
    )
    session.add_pre_commit_event(commit_messages, event)
    session.add_post_commit_event(queue_messages, event)


def register(registry: HandlerRegistry) -> None:
    registry.register_hook(commit_messages)
    registry.register_hook(queue_messages)
    registry.register(EventType.MSG_CREATED, handle_msg_created)
