"""
Event logger protocol.

Components that accept an injected logger (execution record sinks, tests
capturing events) depend on this shape instead of a concrete structlog
logger. Events are snake_case names with keyword context.
"""

from typing import Any, Protocol


class LoggerProtocol(Protocol):
    """Structured event logger with bindable context."""

    def bind(self, **context: Any) -> "LoggerProtocol":
        """Return a logger carrying ``context`` on every event."""
        ...

    def debug(self, event: str, **kwargs: Any) -> Any: ...

    def info(self, event: str, **kwargs: Any) -> Any: ...

    def warning(self, event: str, **kwargs: Any) -> Any: ...
