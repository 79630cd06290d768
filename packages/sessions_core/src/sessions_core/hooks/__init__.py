"""
Commit hooks - bulk application of deferred session events.
"""

from sessions_core.hooks.base import CommitHook
from sessions_core.hooks.contacts import (
    CommitContactLanguageChangesHook,
    CommitContactNameChangesHook,
    commit_contact_language_changes,
    commit_contact_name_changes,
)
from sessions_core.hooks.msgs import CommitMessagesHook, QueueMessagesHook, commit_messages, queue_messages

__all__ = [
    "CommitContactLanguageChangesHook",
    "CommitContactNameChangesHook",
    "CommitHook",
    "CommitMessagesHook",
    "QueueMessagesHook",
    "commit_contact_language_changes",
    "commit_contact_name_changes",
    "commit_messages",
    "queue_messages",
]
