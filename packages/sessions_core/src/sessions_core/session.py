"""
Flow Session

One in-progress flow run as seen by the commit pipeline: its identity, the
events it produced this turn and the effects its handlers deferred.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sessions_core.contracts.events import FlowEvent

if TYPE_CHECKING:
    from sessions_core.hooks.base import CommitHook


@dataclass(eq=False)
class FlowSession:
    """
    A session taking part in a batch.

    Sessions hash by identity so they can key the per-hook mappings handed
    to commit hooks. The queues only live for one batch; only their effects
    persist.

    Attributes:
        id: Session ID
        org_id: Org the session belongs to
        contact_id: Database ID of the session's contact
        contact_uuid: UUID of the session's contact
        events: Events produced this turn, in submission order
    """

    id: int
    org_id: int
    contact_id: int
    contact_uuid: UUID
    events: list[FlowEvent] = field(default_factory=list)

    _pre_commit: dict[str, list[Any]] = field(default_factory=dict, init=False, repr=False)
    _post_commit: dict[str, list[Any]] = field(default_factory=dict, init=False, repr=False)

    def add_pre_commit_event(self, hook: CommitHook, data: Any) -> None:
        """Defer ``data`` to ``hook``, applied inside the batch transaction."""
        self._pre_commit.setdefault(hook.name, []).append(data)

    def add_post_commit_event(self, hook: CommitHook, data: Any) -> None:
        """Defer ``data`` to ``hook``, applied once the batch has committed."""
        self._post_commit.setdefault(hook.name, []).append(data)

    def reset_queues(self) -> None:
        """Discard everything deferred by an earlier attempt at this batch."""
        self._pre_commit.clear()
        self._post_commit.clear()

    @property
    def pre_commit_events(self) -> dict[str, list[Any]]:
        return {name: list(items) for name, items in self._pre_commit.items()}

    @property
    def post_commit_events(self) -> dict[str, list[Any]]:
        return {name: list(items) for name, items in self._post_commit.items()}
