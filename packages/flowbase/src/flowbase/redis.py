"""
Redis utilities for flowbase.

Provides the lazily-initialized connection pool shared by handlers, hooks and
stream consumers, plus helpers for Redis Streams consumer groups.
"""

import contextlib
import functools
from typing import Any, Iterator

import redis

from flowbase.settings import get_settings


@functools.lru_cache()
def get_redis_pool() -> redis.ConnectionPool:
    """
    Get the Redis connection pool (cached).

    Connections are only opened when a command is issued.
    """
    return redis.ConnectionPool.from_url(get_settings().REDIS_URL, decode_responses=True)


@functools.lru_cache()
def get_redis_client() -> redis.Redis:
    """Get a Redis client bound to the shared pool (cached)."""
    return redis.Redis(connection_pool=get_redis_pool())


@contextlib.contextmanager
def redis_connection(client: redis.Redis | None = None) -> Iterator[redis.client.Pipeline]:
    """
    Scoped use of a pooled connection.

    Yields a non-transactional pipeline; buffered commands are sent when the
    block exits normally and the connection goes back to the pool on every
    exit path.
    """
    client = client or get_redis_client()
    with client.pipeline(transaction=False) as pipe:
        yield pipe
        pipe.execute()


def ensure_stream_group(
    stream_name: str,
    group_name: str,
    start_id: str = "0",
    client: redis.Redis | None = None,
) -> bool:
    """
    Ensure a consumer group exists for a stream.

    Creates the group if it doesn't exist. Safe to call multiple times.

    Returns:
        True if group was created, False if it already existed
    """
    client = client or get_redis_client()
    try:
        client.xgroup_create(stream_name, group_name, id=start_id, mkstream=True)
        return True
    except redis.ResponseError as e:
        if "BUSYGROUP" in str(e):
            return False
        raise


def publish_to_stream(
    stream_name: str,
    data: dict[str, Any],
    max_len: int | None = 10000,
    client: redis.Redis | None = None,
) -> str:
    """
    Publish a message to a Redis stream.

    Args:
        stream_name: Name of the Redis stream
        data: Dictionary of field-value pairs to publish
        max_len: Maximum stream length (approximate trim)

    Returns:
        Message ID assigned by Redis
    """
    client = client or get_redis_client()

    string_data = {k: str(v) if not isinstance(v, str) else v for k, v in data.items()}

    if max_len:
        return client.xadd(stream_name, string_data, maxlen=max_len, approximate=True)
    return client.xadd(stream_name, string_data)


def read_from_stream(
    stream_name: str,
    group_name: str,
    consumer_name: str,
    count: int = 10,
    block_ms: int = 5000,
    client: redis.Redis | None = None,
) -> list[tuple[str, dict[str, str]]]:
    """
    Read new messages from a Redis stream using a consumer group.

    Returns:
        List of (message_id, data) tuples
    """
    client = client or get_redis_client()

    result = client.xreadgroup(
        group_name,
        consumer_name,
        {stream_name: ">"},
        count=count,
        block=block_ms,
    )

    if not result:
        return []

    # Result format: [[stream_name, [(msg_id, data), ...]]]
    messages = []
    for _stream, entries in result:
        for msg_id, data in entries:
            messages.append((msg_id, data))

    return messages


def ack_message(
    stream_name: str,
    group_name: str,
    message_id: str,
    client: redis.Redis | None = None,
) -> int:
    """Acknowledge a message as processed."""
    client = client or get_redis_client()
    return client.xack(stream_name, group_name, message_id)


def get_pending_messages(
    stream_name: str,
    group_name: str,
    min_idle_ms: int = 60000,
    count: int = 100,
    client: redis.Redis | None = None,
) -> list[dict[str, Any]]:
    """
    Get pending messages that have been idle for at least ``min_idle_ms``.

    Returns:
        List of pending message info dicts
    """
    client = client or get_redis_client()

    pending_info = client.xpending(stream_name, group_name)
    if not pending_info or pending_info["pending"] == 0:
        return []

    pending_range = client.xpending_range(
        stream_name,
        group_name,
        min="-",
        max="+",
        count=count,
    )

    return [
        {
            "message_id": entry["message_id"],
            "consumer": entry["consumer"],
            "idle_ms": entry["time_since_delivered"],
            "delivery_count": entry["times_delivered"],
        }
        for entry in pending_range
        if entry["time_since_delivered"] >= min_idle_ms
    ]


def claim_messages(
    stream_name: str,
    group_name: str,
    consumer_name: str,
    message_ids: list[str],
    min_idle_ms: int = 60000,
    client: redis.Redis | None = None,
) -> list[tuple[str, dict[str, str]]]:
    """
    Claim pending messages from other consumers.

    Returns:
        List of (message_id, data) tuples for claimed messages
    """
    if not message_ids:
        return []

    client = client or get_redis_client()

    result = client.xclaim(
        stream_name,
        group_name,
        consumer_name,
        min_idle_ms,
        message_ids,
    )

    return [(msg_id, data) for msg_id, data in result]
