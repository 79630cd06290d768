"""
Sessions Core - Flow Session Commit Runtime

Applies the events produced by flow sessions to the relational store and
Redis. It provides:
- Event contracts (typed event models, org assets)
- A handler registry built once at startup
- Per-session pre-commit and post-commit queues
- Commit hooks that apply deferred events as bulk statements
- The batch committer that dispatches, groups and commits a batch atomically

Every batch is one database transaction: either every hook's effect is
committed or none is.
"""

from sessions_core.committer import BatchCommitter, BatchContext, BatchResult, BatchState, process_batch
from sessions_core.registry import HandlerRegistry
from sessions_core.session import FlowSession

__all__ = [
    "BatchCommitter",
    "BatchContext",
    "BatchResult",
    "BatchState",
    "FlowSession",
    "HandlerRegistry",
    "process_batch",
]
