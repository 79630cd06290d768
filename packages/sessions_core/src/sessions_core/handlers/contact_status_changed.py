"""
Contact status changes are applied immediately on the batch transaction.

Status changes are rare and order-sensitive relative to each other, so they
are written as they are handled rather than deferred to a hook.
"""

import logging
from datetime import datetime, timezone

import redis
from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import ContactStatusChangedEvent, EventType
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)

UPDATE_CONTACT_STATUS_SQL = text("""
    UPDATE contacts_contact
    SET status = :status, modified_on = :modified_on
    WHERE id = :contact_id
""").bindparams(bindparam("modified_on", type_=DateTime(timezone=True)))


def handle_contact_status_changed(
    ctx,
    db: Session,
    redis_client: redis.Redis,
    org: OrgAssets,
    session: FlowSession,
    event: ContactStatusChangedEvent,
) -> None:
    logger.debug(
        "changing contact status",
        extra={
            "contact_uuid": str(session.contact_uuid),
            "session_id": session.id,
            "status": event.status.value,
        },
    )
    db.execute(
        UPDATE_CONTACT_STATUS_SQL,
        {
            "status": event.status.value,
            "modified_on": datetime.now(timezone.utc),
            "contact_id": session.contact_id,
        },
    )


def register(registry: HandlerRegistry) -> None:
    registry.register(EventType.CONTACT_STATUS_CHANGED, handle_contact_status_changed)
