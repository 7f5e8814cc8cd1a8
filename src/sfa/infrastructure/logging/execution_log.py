"""
structlog-backed execution records.

Each record becomes one ``agent_execution`` event at INFO level, so it is
visible with ``--verbose`` or ``SFA_LOG_LEVEL=INFO`` and otherwise
filtered like any other diagnostic. No file format is defined here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from sfa.core.interfaces.execution_log import ExecutionLogProtocol, ExecutionRecord
from sfa.core.interfaces.logging import LoggerProtocol
from sfa.core.utils.time import elapsed_ms, utc_now

logger = structlog.get_logger(__name__)

SUMMARY_MAX_CHARS = 500


def summarize(text: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3] + "..."


def build_record(
    *,
    agent: str,
    version: str,
    exit_code: int,
    start_time: datetime,
    started_monotonic: float,
    depth: int,
    call_chain: tuple[str, ...],
    session_id: str,
    input_text: str,
    output_text: str,
    meta: dict[str, Any] | None = None,
) -> ExecutionRecord:
    return ExecutionRecord(
        agent=agent,
        version=version,
        exit_code=int(exit_code),
        start_time=start_time,
        duration_ms=elapsed_ms(started_monotonic),
        depth=depth,
        call_chain=tuple(call_chain),
        session_id=session_id,
        input_summary=summarize(input_text),
        output_summary=summarize(output_text),
        meta=dict(meta or {}),
    )


def record_execution(sink: ExecutionLogProtocol, entry: ExecutionRecord) -> None:
    """Hand ``entry`` to ``sink``. A failing sink never reaches the caller."""
    try:
        sink.record(entry)
    except Exception as exc:
        logger.warning(
            "execution_log.record_failed",
            agent=entry.agent,
            error=str(exc),
            error_type=type(exc).__name__,
        )


class StructlogExecutionLog:
    """Emit execution records as structured log events."""

    def __init__(self, logger: LoggerProtocol | None = None) -> None:
        self._logger = logger or structlog.get_logger("sfa.execution")

    def record(self, entry: ExecutionRecord) -> None:
        try:
            self._logger.info(
                "agent_execution",
                agent=entry.agent,
                version=entry.version,
                exit_code=entry.exit_code,
                start_time=entry.start_time.isoformat(),
                logged_at=utc_now().isoformat(),
                duration_ms=entry.duration_ms,
                depth=entry.depth,
                call_chain=list(entry.call_chain),
                session_id=entry.session_id,
                input_summary=entry.input_summary,
                output_summary=entry.output_summary,
                meta=entry.meta,
            )
        except Exception as exc:
            logger.warning(
                "execution_log.record_failed",
                agent=entry.agent,
                error=str(exc),
                error_type=type(exc).__name__,
            )


class NullExecutionLog:
    """Sink used with ``--no-log`` / ``SFA_NO_LOG=1``."""

    def record(self, entry: ExecutionRecord) -> None:
        return None
