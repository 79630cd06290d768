"""
Sessions Worker - Redis Streams Consumer

Commits the session batches published by the flow engine.

This worker uses ONLY:
- flowbase (DB, settings, logging, redis)
- sessions_core (registry, committer, consumer)

Features:
- XREADGROUP consumer for horizontal scaling
- PEL reclaim for stuck batches
- Idempotent redelivery via runtime_processed_batches
- Graceful shutdown
"""

import logging
import os
import signal
import socket
import sys
import threading
import time

from flowbase.db import get_sessionmaker
from flowbase.logging import setup_logging
from flowbase.redis import ensure_stream_group, get_redis_client
from sessions_core.committer import BatchCommitter
from sessions_core.consumer import (
    DEFAULT_GROUP_NAME,
    DEFAULT_STREAM_NAME,
    consume_from_stream,
    reclaim_pending_messages,
)
from sessions_core.exceptions import ConfigurationError
from sessions_core.handlers import build_registry

logger = logging.getLogger(__name__)

# Configuration
STREAM_NAME = os.getenv("SESSIONS_STREAM_NAME", DEFAULT_STREAM_NAME)
GROUP_NAME = os.getenv("SESSIONS_GROUP_NAME", DEFAULT_GROUP_NAME)
CONSUMER_NAME = os.getenv("SESSIONS_CONSUMER_NAME", f"sessions-{socket.gethostname()}-{os.getpid()}")
BATCH_SIZE = int(os.getenv("SESSIONS_BATCH_SIZE", "10"))
BLOCK_MS = int(os.getenv("SESSIONS_BLOCK_MS", "5000"))
RECLAIM_INTERVAL_SEC = int(os.getenv("SESSIONS_RECLAIM_INTERVAL", "60"))
RECLAIM_IDLE_MS = int(os.getenv("SESSIONS_RECLAIM_IDLE_MS", "60000"))

# Graceful shutdown
shutdown_requested = threading.Event()


def signal_handler(signum, frame):
    logger.info(f"Received signal {signum}, requesting shutdown...")
    shutdown_requested.set()


def build_committer() -> BatchCommitter:
    """
    Build the registry and committer.

    Exits the process on configuration errors, they can't be fixed at runtime.
    """
    try:
        registry = build_registry()
    except ConfigurationError as e:
        logger.critical(f"Invalid handler configuration: {e}")
        sys.exit(1)

    return BatchCommitter(registry, get_sessionmaker(), get_redis_client())


def ensure_consumer_group(committer: BatchCommitter) -> bool:
    """Ensure the consumer group exists for the stream."""
    try:
        created = ensure_stream_group(STREAM_NAME, GROUP_NAME, start_id="0", client=committer.redis_client)
        if created:
            logger.info(f"Created consumer group '{GROUP_NAME}' for stream '{STREAM_NAME}'")
        else:
            logger.debug(f"Consumer group '{GROUP_NAME}' already exists for stream '{STREAM_NAME}'")
        return True
    except Exception as e:
        logger.error(f"Failed to ensure consumer group: {e}", exc_info=True)
        return False


def run_reclaim_loop(committer: BatchCommitter):
    """
    Background thread reclaiming pending batches every RECLAIM_INTERVAL_SEC.
    """
    logger.info(f"Starting PEL reclaim loop (interval={RECLAIM_INTERVAL_SEC}s, idle_threshold={RECLAIM_IDLE_MS}ms)")

    while not shutdown_requested.wait(RECLAIM_INTERVAL_SEC):
        try:
            reclaimed = reclaim_pending_messages(
                committer,
                stream_name=STREAM_NAME,
                group_name=GROUP_NAME,
                consumer_name=CONSUMER_NAME,
                min_idle_ms=RECLAIM_IDLE_MS,
                count=100,
            )
            if reclaimed > 0:
                logger.info(f"Reclaimed and committed {reclaimed} pending batches")
        except Exception as e:
            logger.error(f"Error in reclaim loop: {e}", exc_info=True)


def main():
    """Main worker loop."""
    setup_logging()
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info(
        f"Starting sessions worker (stream={STREAM_NAME}, group={GROUP_NAME}, "
        f"consumer={CONSUMER_NAME}, batch={BATCH_SIZE})"
    )

    committer = build_committer()

    if not ensure_consumer_group(committer):
        logger.error("Failed to initialize consumer group, exiting")
        sys.exit(1)

    # Pick up batches orphaned by a previous worker before reading new ones
    try:
        initial_reclaimed = reclaim_pending_messages(
            committer,
            stream_name=STREAM_NAME,
            group_name=GROUP_NAME,
            consumer_name=CONSUMER_NAME,
            min_idle_ms=RECLAIM_IDLE_MS,
            count=100,
        )
        if initial_reclaimed > 0:
            logger.info(f"Initial reclaim: committed {initial_reclaimed} orphaned batches")
    except Exception as e:
        logger.warning(f"Initial reclaim failed: {e}")

    reclaim_thread = threading.Thread(target=run_reclaim_loop, args=(committer,), daemon=True)
    reclaim_thread.start()

    while not shutdown_requested.is_set():
        try:
            count = consume_from_stream(
                committer,
                stream_name=STREAM_NAME,
                group_name=GROUP_NAME,
                consumer_name=CONSUMER_NAME,
                count=BATCH_SIZE,
                block_ms=BLOCK_MS,
            )
            if count > 0:
                logger.info(f"Committed {count} batches from stream")

        except Exception as e:
            logger.error(f"Error in consume loop: {e}", exc_info=True)
            time.sleep(1)

    logger.info("Sessions worker shutting down gracefully")


if __name__ == "__main__":
    main()
