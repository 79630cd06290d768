"""
Logging setup for runtime processes.

Modules log through ``logging.getLogger(__name__)`` and attach context with
``extra={...}``. The formatter installed here renders that context as
``key=value`` pairs after the message.
"""

import logging
import sys

from flowbase.settings import get_settings

# Attributes present on every LogRecord, never rendered as context
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``extra`` fields to the log line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            line = f"{line} | {pairs}"
        return line


def setup_logging(level: str | None = None) -> None:
    """
    Configure root logging for a runtime process.

    Args:
        level: Log level name, defaults to LOG_LEVEL from settings
    """
    level_name = (level or get_settings().LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_name)

    # SQL echo is controlled by settings, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
