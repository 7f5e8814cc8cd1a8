"""Progress side channel on stderr."""

from __future__ import annotations

from typing import TextIO

import structlog
from rich.console import Console

from sfa.core.interfaces.progress import ProgressProtocol
from sfa.infrastructure.config.env_resolver import ResolvedEnv, mask_secrets

logger = structlog.get_logger(__name__)


class StderrProgress:
    """Write ``[agent:<name>] <message>`` lines to stderr.

    Secret values from the resolved environment are masked. Failures are
    logged and swallowed: progress is fire-and-forget.
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        resolved_env: ResolvedEnv | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._quiet = quiet
        self._resolved_env = resolved_env
        self._console = Console(
            file=stream,
            stderr=stream is None,
            markup=False,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )

    def emit(self, agent_name: str, message: str) -> None:
        if self._quiet:
            return
        try:
            self._console.print(f"[agent:{agent_name}] {mask_secrets(message, self._resolved_env)}")
        except Exception as exc:
            logger.warning("progress.emit_failed", agent=agent_name, error=str(exc))


def emit_progress(progress: ProgressProtocol, agent_name: str, message: str) -> None:
    """Fire-and-forget ``progress.emit``; errors are logged, never raised."""
    try:
        progress.emit(agent_name, message)
    except Exception as exc:
        logger.warning("progress.emit_failed", agent=agent_name, error=str(exc))
