"""
Commit hook contract.

A hook is a stateless strategy that applies every event deferred to it in a
batch, across all sessions, with as few statements as possible (ideally one).
Hooks are identified by a stable ``name``; sessions group deferred data by
that name and the batch committer resolves it through the registry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets

if TYPE_CHECKING:
    from sessions_core.committer import BatchContext
    from sessions_core.session import FlowSession


class CommitHook(ABC):
    """
    Base class for commit hooks.

    Subclasses set ``name`` and document how they reduce several events from
    the same session (e.g. last-write-wins or apply-all).
    """

    name: ClassVar[str]

    @abstractmethod
    def apply(
        self,
        ctx: BatchContext,
        db: Session | None,
        redis_client: redis.Redis,
        org: OrgAssets,
        sessions: dict[FlowSession, list[Any]],
    ) -> None:
        """
        Apply the deferred data of every session in one bulk operation.

        Args:
            ctx: Batch context
            db: The batch transaction, None for post-commit hooks
            redis_client: Client over the shared Redis pool
            org: Org assets for the batch
            sessions: Session -> data in submission order

        Raises:
            Any exception aborts (pre-commit) or is reported for (post-commit) the batch.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
