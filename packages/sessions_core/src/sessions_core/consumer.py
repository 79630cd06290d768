"""
Redis Streams Consumer for Session Batches

The flow engine publishes each finished batch of sessions to a Redis stream.
This consumer reads batches with XREADGROUP and commits them through the
batch committer.

Features:
- Consumer group support for horizontal scaling
- Idempotent redelivery via the runtime_processed_batches table
- XACK only after the batch committed
- Failed batches stay pending and are retried whole (never partially)
"""

import json
import logging
from typing import Callable
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError

from flowbase.redis import ack_message, claim_messages, get_pending_messages, publish_to_stream, read_from_stream
from sessions_core.committer import BatchCommitter, BatchContext, BatchResult
from sessions_core.contracts.assets import OrgAssets
from sessions_core.contracts.events import AnyEvent
from sessions_core.exceptions import PostCommitError
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


DEFAULT_STREAM_NAME = "sessions:batches"
DEFAULT_GROUP_NAME = "committers"

OrgLoader = Callable[[int], OrgAssets]


class SessionPayload(BaseModel):
    """One session of a batch as published by the flow engine."""

    id: int
    contact_id: int
    contact_uuid: UUID
    events: list[AnyEvent] = Field(default_factory=list)

    def to_session(self, org_id: int) -> FlowSession:
        return FlowSession(
            id=self.id,
            org_id=org_id,
            contact_id=self.contact_id,
            contact_uuid=self.contact_uuid,
            events=list(self.events),
        )


class SessionBatch(BaseModel):
    """A batch of sessions from one org, committed together."""

    batch_id: str
    org_id: int
    sessions: list[SessionPayload] = Field(default_factory=list)

    def to_sessions(self) -> list[FlowSession]:
        return [s.to_session(self.org_id) for s in self.sessions]

    def to_stream_fields(self) -> dict[str, str]:
        return {
            "batch_id": self.batch_id,
            "org_id": str(self.org_id),
            "sessions": json.dumps([s.model_dump(mode="json") for s in self.sessions]),
        }


def parse_batch_message(msg_id: str, data: dict[str, str]) -> SessionBatch:
    """
    Parse a Redis Stream message into a SessionBatch.

    Messages without a batch_id use the stream message ID.

    Raises:
        pydantic.ValidationError: malformed batch or event payload
    """
    return SessionBatch.model_validate(
        {
            "batch_id": data.get("batch_id") or msg_id,
            "org_id": data.get("org_id"),
            "sessions": json.loads(data.get("sessions", "[]")),
        }
    )


def publish_batch(committer: BatchCommitter, batch: SessionBatch, stream_name: str = DEFAULT_STREAM_NAME) -> str:
    """Publish a batch to the stream, returns the stream message ID."""
    return publish_to_stream(stream_name, batch.to_stream_fields(), client=committer.redis_client)


def _default_org_loader(org_id: int) -> OrgAssets:
    return OrgAssets(org_id=org_id)


def process_stream_message(
    committer: BatchCommitter,
    msg_id: str,
    data: dict[str, str],
    load_org: OrgLoader = _default_org_loader,
) -> BatchResult:
    """
    Parse and commit a single batch message.

    Returns:
        The batch result (COMMITTED or SKIPPED)
    """
    batch = parse_batch_message(msg_id, data)
    org = load_org(batch.org_id)
    ctx = BatchContext(batch_id=batch.batch_id)

    result = committer.process_batch(batch.to_sessions(), org, ctx)

    logger.info(
        f"Processed batch {batch.batch_id}",
        extra={
            "batch_id": batch.batch_id,
            "org_id": batch.org_id,
            "state": result.state.value,
            "msg_id": msg_id,
        },
    )
    return result


def _handle_messages(
    committer: BatchCommitter,
    messages: list[tuple[str, dict[str, str]]],
    stream_name: str,
    group_name: str,
    load_org: OrgLoader,
) -> int:
    processed_count = 0

    for msg_id, data in messages:
        try:
            process_stream_message(committer, msg_id, data, load_org)
        except (ValidationError, json.JSONDecodeError) as e:
            # ACK invalid messages so they don't block the group forever
            logger.error(f"Invalid batch message {msg_id}: {e}", extra={"msg_id": msg_id})
            ack_message(stream_name, group_name, msg_id, client=committer.redis_client)
            continue
        except PostCommitError as e:
            # Database effects are committed, redelivery would only be skipped
            logger.warning(
                f"Batch committed with post-commit failure {msg_id}: {e}",
                extra={"msg_id": msg_id, "hook": e.hook_name},
            )
        except Exception as e:
            # Don't ACK - the whole batch will be redelivered or reclaimed
            logger.error(
                f"Failed to process batch message {msg_id}: {e}",
                extra={"msg_id": msg_id},
                exc_info=True,
            )
            continue

        ack_message(stream_name, group_name, msg_id, client=committer.redis_client)
        processed_count += 1

    return processed_count


def consume_from_stream(
    committer: BatchCommitter,
    stream_name: str = DEFAULT_STREAM_NAME,
    group_name: str = DEFAULT_GROUP_NAME,
    consumer_name: str = "sessions-worker",
    count: int = 10,
    block_ms: int = 5000,
    load_org: OrgLoader = _default_org_loader,
) -> int:
    """
    Consume and commit batches from Redis Streams.

    Returns:
        Number of batches committed (or skipped as duplicates) and ACKed
    """
    messages = read_from_stream(
        stream_name,
        group_name,
        consumer_name,
        count=count,
        block_ms=block_ms,
        client=committer.redis_client,
    )

    if not messages:
        return 0

    return _handle_messages(committer, messages, stream_name, group_name, load_org)


def reclaim_pending_messages(
    committer: BatchCommitter,
    stream_name: str = DEFAULT_STREAM_NAME,
    group_name: str = DEFAULT_GROUP_NAME,
    consumer_name: str = "sessions-worker",
    min_idle_ms: int = 60000,
    count: int = 100,
    load_org: OrgLoader = _default_org_loader,
) -> int:
    """
    Reclaim and commit batches that have been pending too long.

    Covers batches from crashed consumers and batches whose commit failed.
    Idempotency protects against committing a batch twice.

    Returns:
        Number of batches reclaimed and ACKed
    """
    pending = get_pending_messages(
        stream_name, group_name, min_idle_ms, count, client=committer.redis_client
    )
    if not pending:
        return 0

    message_ids = [p["message_id"] for p in pending]
    claimed = claim_messages(
        stream_name,
        group_name,
        consumer_name,
        message_ids,
        min_idle_ms,
        client=committer.redis_client,
    )
    if not claimed:
        return 0

    logger.info(f"Reclaimed {len(claimed)} pending batches")

    return _handle_messages(committer, claimed, stream_name, group_name, load_org)

