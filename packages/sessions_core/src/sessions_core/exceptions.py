"""
Exceptions raised by the commit pipeline.

Configuration errors are programming errors and surface at startup or on the
first dispatch. Handler and hook errors abort the enclosing batch. Nothing is
retried inside the core; callers retry whole batches.
"""


class SessionsCoreError(Exception):
    """Base class for all commit pipeline errors."""


class ConfigurationError(SessionsCoreError):
    """Handler/hook wiring is wrong. Never recoverable at runtime."""


class DuplicateHandlerError(ConfigurationError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"handler already registered for event type: {event_type}")


class DuplicateHookError(ConfigurationError):
    def __init__(self, hook_name: str):
        self.hook_name = hook_name
        super().__init__(f"a different hook is already registered with name: {hook_name}")


class HandlerNotFoundError(ConfigurationError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"no handler registered for event type: {event_type}")


class HookNotFoundError(ConfigurationError):
    def __init__(self, hook_name: str):
        self.hook_name = hook_name
        super().__init__(f"no hook registered with name: {hook_name}")


class RegistryFrozenError(ConfigurationError):
    """Registration attempted after initialization completed."""


class HandlerError(SessionsCoreError):
    """A handler failed while processing one event."""

    def __init__(self, event_type: str, session_id: int, cause: Exception):
        self.event_type = event_type
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"error handling {event_type} event for session {session_id}: {cause}")


class HookError(SessionsCoreError):
    """A commit hook failed to apply its bulk operation."""

    def __init__(self, hook_name: str, cause: Exception):
        self.hook_name = hook_name
        self.cause = cause
        super().__init__(f"error applying hook {hook_name}: {cause}")


class BatchCancelledError(SessionsCoreError):
    """The batch was cancelled before it could commit."""


class PostCommitError(SessionsCoreError):
    """
    A post-commit hook failed.

    The batch transaction is already committed when this is raised.
    """

    def __init__(self, hook_name: str, cause: Exception, batch_id: str | None = None):
        self.hook_name = hook_name
        self.cause = cause
        self.batch_id = batch_id
        super().__init__(f"error applying post-commit hook {hook_name}: {cause}")
