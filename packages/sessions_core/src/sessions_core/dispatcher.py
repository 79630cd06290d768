"""
Event Dispatcher - routes each event to its registered handler.

Handlers either write through the batch transaction straight away or defer
data to a commit hook on the session. Either way nothing is visible until the
batch commits.
"""

import logging
from typing import Iterable

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import FlowEvent
from sessions_core.exceptions import ConfigurationError, HandlerError, HandlerNotFoundError
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


def ensure_handlers(registry: HandlerRegistry, sessions: Iterable[FlowSession]) -> None:
    """
    Check every event in the batch has a handler.

    Run before any database work so a missing handler can't leave torn state.

    Raises:
        HandlerNotFoundError: for the first event type without a handler
    """
    for session in sessions:
        for event in session.events:
            if not registry.has_handler(event.type):
                raise HandlerNotFoundError(event.type)


def dispatch(
    ctx,
    registry: HandlerRegistry,
    db: Session,
    redis_client: redis.Redis,
    org: OrgAssets,
    session: FlowSession,
    event: FlowEvent,
) -> None:
    """
    Invoke the handler for ``event`` synchronously.

    Raises:
        HandlerNotFoundError: no handler is registered for the event type
        HandlerError: the handler failed, wraps the original exception
    """
    handler = registry.lookup(event.type)

    try:
        handler(ctx, db, redis_client, org, session, event)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(
            f"Handler failed for {event.type} event",
            extra={"event_type": event.type, "session_id": session.id, "error": str(e)},
        )
        raise HandlerError(event.type, session.id, e) from e
