"""
Tests for grouping deferred events by hook across sessions.
"""

from uuid import uuid4

import pytest

from sessions_core.committer import BatchCommitter, group_by_hook
from sessions_core.contracts.events import ContactLanguageChangedEvent, ContactNameChangedEvent
from sessions_core.hooks.base import CommitHook
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession


class RecordingHook(CommitHook):
    """Hook that records every apply call instead of writing."""

    def __init__(self, name):
        self.name = name
        self.calls = []

    def apply(self, ctx, db, redis_client, org, sessions):
        self.calls.append({session: list(items) for session, items in sessions.items()})


def make_session(session_id, *events):
    return FlowSession(id=session_id, org_id=1, contact_id=session_id, contact_uuid=uuid4(), events=list(events))


class TestGroupByHook:

    def test_inverts_session_queues(self):
        s1 = make_session(1)
        s2 = make_session(2)
        s1.add_pre_commit_event(RecordingHook("h"), "s1-a")
        s1.add_pre_commit_event(RecordingHook("h2"), "s1-b")
        s2.add_pre_commit_event(RecordingHook("h"), "s2-a")

        grouped = group_by_hook([s1, s2])

        assert grouped == {"h": {s1: ["s1-a"], s2: ["s2-a"]}, "h2": {s1: ["s1-b"]}}

    def test_preserves_session_and_submission_order(self):
        hook = RecordingHook("h")
        sessions = [make_session(i) for i in range(5)]
        for session in reversed(sessions):
            for n in range(3):
                session.add_pre_commit_event(hook, (session.id, n))

        grouped = group_by_hook(reversed(sessions))

        assert list(grouped["h"]) == list(reversed(sessions))
        for session, items in grouped["h"].items():
            assert items == [(session.id, 0), (session.id, 1), (session.id, 2)]

    def test_sessions_without_events_are_absent(self):
        hook = RecordingHook("h")
        busy = make_session(1)
        idle = make_session(2)
        busy.add_pre_commit_event(hook, "x")

        grouped = group_by_hook([busy, idle])

        assert idle not in grouped["h"]

    def test_post_commit_grouping(self):
        hook = RecordingHook("h")
        session = make_session(1)
        session.add_pre_commit_event(hook, "pre")
        session.add_post_commit_event(hook, "post")

        assert group_by_hook([session], post_commit=True) == {"h": {session: ["post"]}}


class TestHookInvocation:
    """Each hook is applied exactly once per batch with everything for it."""

    @pytest.fixture
    def hooks(self):
        return RecordingHook("h"), RecordingHook("h2")

    @pytest.fixture
    def committer(self, hooks, session_factory, redis_client):
        hook, hook2 = hooks

        def defer_name(ctx, db, redis_client, org, session, event):
            session.add_pre_commit_event(hook, event)

        def defer_language(ctx, db, redis_client, org, session, event):
            session.add_pre_commit_event(hook2, event)

        registry = HandlerRegistry()
        registry.register_hook(hook)
        registry.register_hook(hook2)
        registry.register("contact_name_changed", defer_name)
        registry.register("contact_language_changed", defer_language)
        registry.freeze()

        return BatchCommitter(registry, session_factory, redis_client)

    def test_each_hook_applied_once(self, committer, hooks, org):
        hook, hook2 = hooks
        s1_name = ContactNameChangedEvent(name="One")
        s1_lang = ContactLanguageChangedEvent(language="eng")
        s2_name = ContactNameChangedEvent(name="Two")
        s1 = make_session(1, s1_name, s1_lang)
        s2 = make_session(2, s2_name)

        result = committer.process_batch([s1, s2], org)

        assert hook.calls == [{s1: [s1_name], s2: [s2_name]}]
        assert hook2.calls == [{s1: [s1_lang]}]
        assert sorted(result.hooks_applied) == ["h", "h2"]

    def test_hook_receives_events_in_submission_order(self, committer, hooks, org):
        hook, _ = hooks
        events = [ContactNameChangedEvent(name=str(n)) for n in range(10)]
        session = make_session(1, *events)

        committer.process_batch([session], org)

        assert hook.calls == [{session: events}]

    def test_hooks_not_called_without_deferred_events(self, committer, hooks, org):
        hook, hook2 = hooks

        result = committer.process_batch([make_session(1), make_session(2)], org)

        assert hook.calls == []
        assert hook2.calls == []
        assert result.hooks_applied == []
