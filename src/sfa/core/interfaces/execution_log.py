"""
Execution Record Protocol

One record is written per top-level execution and per tool call. Sinks
are best-effort: a failing sink must never change an exit code or a
protocol response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True)
class ExecutionRecord:
    """What happened during one execution."""

    agent: str
    version: str
    exit_code: int
    start_time: datetime
    duration_ms: int
    depth: int
    call_chain: tuple[str, ...]
    session_id: str
    input_summary: str
    output_summary: str
    meta: dict[str, Any] = field(default_factory=dict)


class ExecutionLogProtocol(Protocol):
    """Sink for execution records."""

    def record(self, entry: ExecutionRecord) -> None:
        """Persist or emit one record. Must not raise."""
        ...
