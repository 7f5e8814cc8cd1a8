"""Progress side-channel protocol."""

from typing import Protocol


class ProgressProtocol(Protocol):
    """Fire-and-forget progress messages, kept apart from result output."""

    def emit(self, agent_name: str, message: str) -> None:
        """Emit one progress line for ``agent_name``."""
        ...
