"""
Commit hooks for contact field changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import redis
from sqlalchemy.orm import Session

from sessions_core.contracts.assets import OrgAssets
from sessions_core.hooks.base import CommitHook
from sessions_core.persistence.bulk import bulk_update
from sessions_core.persistence.models import Contact

if TYPE_CHECKING:
    from sessions_core.committer import BatchContext
    from sessions_core.session import FlowSession


@dataclass
class NameUpdate:
    id: int
    name: str


@dataclass
class LanguageUpdate:
    id: int
    language: str | None


class CommitContactNameChangesHook(CommitHook):
    """
    Commits contact name changes as one bulk update.

    Last write wins: only the final name queued by each session is written,
    earlier names from the same session are discarded.
    """

    name = "commit_contact_name_changes"

    def apply(
        self,
        ctx: BatchContext,
        db: Session,
        redis_client: redis.Redis,
        org: OrgAssets,
        sessions: dict[FlowSession, list[Any]],
    ) -> None:
        now = datetime.now(timezone.utc)
        updates = [
            NameUpdate(id=session.contact_id, name=events[-1].name)
            for session, events in sessions.items()
        ]
        bulk_update(db, "updating contact name", Contact.__table__, updates, modified_on=now)


class CommitContactLanguageChangesHook(CommitHook):
    """
    Commits contact language changes as one bulk update.

    Last write wins per session. An empty language clears the contact's
    language (stored as NULL).
    """

    name = "commit_contact_language_changes"

    def apply(
        self,
        ctx: BatchContext,
        db: Session,
        redis_client: redis.Redis,
        org: OrgAssets,
        sessions: dict[FlowSession, list[Any]],
    ) -> None:
        now = datetime.now(timezone.utc)
        updates = [
            LanguageUpdate(
                id=session.contact_id,
                language=events[-1].language or None,
            )
            for session, events in sessions.items()
        ]
        bulk_update(db, "updating contact language", Contact.__table__, updates, modified_on=now)


commit_contact_name_changes = CommitContactNameChangesHook()
commit_contact_language_changes = CommitContactLanguageChangesHook()
