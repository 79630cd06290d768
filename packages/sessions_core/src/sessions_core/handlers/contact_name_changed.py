import logging

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import ContactNameChangedEvent, EventType
from sessions_core.hooks.contacts import commit_contact_name_changes
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


def handle_contact_name_changed(
    ctx,
    db: Session,
    redis_client: redis.Redis,
    org: OrgAssets,
    session: FlowSession,
    event: ContactNameChangedEvent,
) -> None:
    """Defers the name change to the bulk name hook."""
    logger.debug(
        "changing contact name",
        extra={
            "contact_uuid": str(session.contact_uuid),
            "session_id": session.id,
            "name": event.name,
        },
    )
    session.add_pre_commit_event(commit_contact_name_changes, event)


def register(registry: HandlerRegistry) -> None:
    registry.register_hook(commit_contact_name_changes)
    registry.register(EventType.CONTACT_NAME_CHANGED, handle_contact_name_changed)
