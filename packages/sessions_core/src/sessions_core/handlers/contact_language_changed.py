import logging

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import ContactLanguageChangedEvent, EventType
from sessions_core.hooks.contacts import commit_contact_language_changes
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


def handle_contact_language_changed(
    ctx,
    db: Session,
    redis_client: redis.Redis,
    org: OrgAssets,
    session: FlowSession,
    event: ContactLanguageChangedEvent,
) -> None:
    logger.debug(
        "changing contact language",
        extra={
            "contact_uuid": str(session.contact_uuid),
            "session_id": session.id,
            "language": event.language,
        },
    )
    session.add_pre_commit_event(commit_contact_language_changes, event)


def register(registry: HandlerRegistry) -> None:
    registry.register_hook(commit_contact_language_changes)
    registry.register(EventType.CONTACT_LANGUAGE_CHANGED, handle_contact_language_changed)
