"""
Batch Committer

Takes the sessions that finished a processing turn and commits their effects
as one atomic unit:

1. Dispatch every event, in submission order, to its handler
2. Group the deferred data of all sessions by hook
3. Apply each hook exactly once with everything destined for it
4. Commit, or roll back everything if any step fails

Dispatch, grouping and commit run sequentially against one transaction.
Post-commit hooks (Redis side effects that can't be rolled back) run only
after the commit succeeded.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable

import redis
from sqlalchemy import JSON, DateTime, bindparam, text
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.dispatcher import dispatch, ensure_handlers
from sessions_core.exceptions import (
    BatchCancelledError,
    ConfigurationError,
    HookError,
    PostCommitError,
)
from sessions_core.hooks.base import CommitHook
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    """Lifecycle of a batch."""

    COLLECTING = "collecting"
    DISPATCHING = "dispatching"
    GROUPING = "grouping"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"


@dataclass
class BatchContext:
    """
    Per-batch context handed to every handler and hook.

    Attributes:
        batch_id: Stable ID of the batch, enables idempotent redelivery
        cancel_event: Set to cancel the batch; checked up to the commit
    """

    batch_id: str | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        self.cancel_event.set()

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise BatchCancelledError(f"batch {self.batch_id or '-'} cancelled before commit")


@dataclass
class BatchResult:
    """Outcome of a successfully processed (or skipped) batch."""

    batch_id: str | None
    state: BatchState
    session_count: int
    event_count: int
    hooks_applied: list[str] = field(default_factory=list)
    post_commit_hooks_applied: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "state": self.state.value,
            "session_count": self.session_count,
            "event_count": self.event_count,
            "hooks_applied": list(self.hooks_applied),
            "post_commit_hooks_applied": list(self.post_commit_hooks_applied),
        }


def group_by_hook(
    sessions: Iterable[FlowSession],
    post_commit: bool = False,
) -> dict[str, dict[FlowSession, list[Any]]]:
    """
    Invert per-session queues into hook name -> session -> data.

    Session order and per-session submission order are preserved. Sessions
    that queued nothing for a hook don't appear under it.
    """
    grouped: dict[str, dict[FlowSession, list[Any]]] = {}
    for session in sessions:
        queued = session.post_commit_events if post_commit else session.pre_commit_events
        for hook_name, items in queued.items():
            if items:
                grouped.setdefault(hook_name, {})[session] = items
    return grouped


IS_BATCH_PROCESSED_SQL = text("SELECT 1 FROM runtime_processed_batches WHERE batch_id = :batch_id")

MARK_BATCH_PROCESSED_SQL = text("""
    INSERT INTO runtime_processed_batches
        (batch_id, org_id, session_count, hooks, processed_on)
    VALUES
        (:batch_id, :org_id, :session_count, :hooks, :processed_on)
    ON CONFLICT (batch_id) DO NOTHING
""").bindparams(
    bindparam("hooks", type_=JSON),
    bindparam("processed_on", type_=DateTime(timezone=True)),
)


class BatchCommitter:
    """
    Dispatches and commits batches of sessions.

    One committer is built at startup and shared; each ``process_batch``
    call uses its own database session (= transaction).
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        session_factory: Callable[[], Session],
        redis_client: redis.Redis,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.redis_client = redis_client

    def process_batch(
        self,
        sessions: Iterable[FlowSession],
        org: OrgAssets,
        ctx: BatchContext | None = None,
    ) -> BatchResult:
        """
        Dispatch, group and commit a batch.

        Returns:
            BatchResult in state COMMITTED, or SKIPPED if ``ctx.batch_id``
            was already committed

        Raises:
            HandlerNotFoundError: an event type has no handler (no DB work done)
            HookNotFoundError: a queued hook isn't registered, batch rolled back
            HandlerError: a handler failed, batch rolled back
            HookError: a hook failed, batch rolled back
            BatchCancelledError: cancelled before commit, batch rolled back
            PostCommitError: the batch committed but a post-commit hook failed
        """
        ctx = ctx or BatchContext()
        sessions = list(sessions)
        result = BatchResult(
            batch_id=ctx.batch_id,
            state=BatchState.COLLECTING,
            session_count=len(sessions),
            event_count=sum(len(s.events) for s in sessions),
        )

        ensure_handlers(self.registry, sessions)
        ctx.check_cancelled()

        db = self.session_factory()
        try:
            if ctx.batch_id and self._is_processed(db, ctx.batch_id):
                db.rollback()
                result.state = BatchState.SKIPPED
                logger.info(f"Batch {ctx.batch_id} already processed, skipping")
                return result

            result.state = BatchState.DISPATCHING
            for session in sessions:
                ctx.check_cancelled()
                session.reset_queues()
                for event in session.events:
                    dispatch(ctx, self.registry, db, self.redis_client, org, session, event)

            result.state = BatchState.GROUPING
            grouped = self._resolve(group_by_hook(sessions))
            post_grouped = self._resolve(group_by_hook(sessions, post_commit=True))

            result.state = BatchState.COMMITTING
            for hook, by_session in grouped:
                ctx.check_cancelled()
                self._apply_hook(ctx, db, org, hook, by_session)
                result.hooks_applied.append(hook.name)

            if ctx.batch_id and not self._mark_processed(db, ctx.batch_id, org, result):
                # Another worker committed the same batch meanwhile
                db.rollback()
                result.state = BatchState.SKIPPED
                logger.info(f"Batch {ctx.batch_id} was committed by another worker")
                return result

            ctx.check_cancelled()
            db.commit()
            result.state = BatchState.COMMITTED

        except Exception as e:
            db.rollback()
            failed_in = result.state
            result.state = BatchState.ROLLED_BACK
            logger.error(
                f"Batch rolled back: {e}",
                extra={
                    "batch_id": ctx.batch_id,
                    "org_id": org.org_id,
                    "failed_in": failed_in.value,
                    "sessions": result.session_count,
                },
            )
            raise
        finally:
            db.close()

        logger.info(
            "Committed batch",
            extra={
                "batch_id": ctx.batch_id,
                "org_id": org.org_id,
                "sessions": result.session_count,
                "events": result.event_count,
                "hooks": ",".join(result.hooks_applied),
            },
        )

        self._run_post_commit(ctx, org, post_grouped, result)
        return result

    def _resolve(
        self, grouped: dict[str, dict[FlowSession, list[Any]]]
    ) -> list[tuple[CommitHook, dict[FlowSession, list[Any]]]]:
        return [(self.registry.lookup_hook(name), by_session) for name, by_session in grouped.items()]

    def _apply_hook(
        self,
        ctx: BatchContext,
        db: Session,
        org: OrgAssets,
        hook: CommitHook,
        by_session: dict[FlowSession, list[Any]],
    ) -> None:
        try:
            hook.apply(ctx, db, self.redis_client, org, by_session)
        except (ConfigurationError, BatchCancelledError):
            raise
        except Exception as e:
            raise HookError(hook.name, e) from e

    def _run_post_commit(
        self,
        ctx: BatchContext,
        org: OrgAssets,
        grouped: list[tuple[CommitHook, dict[FlowSession, list[Any]]]],
        result: BatchResult,
    ) -> None:
        """
        Run post-commit hooks, already resolved before the commit. Every hook
        is attempted even if one fails.

        Raises:
            PostCommitError: for the first hook that failed
        """
        first_error: PostCommitError | None = None

        for hook, by_session in grouped:
            try:
                hook.apply(ctx, None, self.redis_client, org, by_session)
                result.post_commit_hooks_applied.append(hook.name)
            except Exception as e:
                logger.error(
                    f"Post-commit hook {hook.name} failed: {e}",
                    extra={"batch_id": ctx.batch_id, "org_id": org.org_id, "hook": hook.name},
                    exc_info=True,
                )
                if first_error is None:
                    first_error = PostCommitError(hook.name, e, batch_id=ctx.batch_id)

        if first_error is not None:
            raise first_error

    @staticmethod
    def _is_processed(db: Session, batch_id: str) -> bool:
        return db.execute(IS_BATCH_PROCESSED_SQL, {"batch_id": batch_id}).fetchone() is not None

    @staticmethod
    def _mark_processed(db: Session, batch_id: str, org: OrgAssets, result: BatchResult) -> bool:
        inserted = db.execute(
            MARK_BATCH_PROCESSED_SQL,
            {
                "batch_id": batch_id,
                "org_id": org.org_id,
                "session_count": result.session_count,
                "hooks": result.hooks_applied,
                "processed_on": datetime.now(timezone.utc),
            },
        )
        return inserted.rowcount > 0


def process_batch(
    sessions: Iterable[FlowSession],
    org: OrgAssets,
    registry: HandlerRegistry,
    session_factory: Callable[[], Session] | None = None,
    redis_client: redis.Redis | None = None,
    ctx: BatchContext | None = None,
) -> BatchResult:
    """
    Convenience function to commit one batch.

    Falls back to the shared sessionmaker and Redis client from flowbase.
    """
    if session_factory is None:
        from flowbase.db import get_sessionmaker

        session_factory = get_sessionmaker()
    if redis_client is None:
        from flowbase.redis import get_redis_client

        redis_client = get_redis_client()

    committer = BatchCommitter(registry, session_factory, redis_client)
    return committer.process_batch(sessions, org, ctx)
