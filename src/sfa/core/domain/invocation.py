"""Domain models for subagent invocation."""

from __future__ import annotations

from dataclasses import dataclass, field

from sfa.core.domain.enums import ExitCode

TIMEOUT_EXIT_CODE = int(ExitCode.TIMEOUT)


@dataclass(frozen=True)
class InvokeOptions:
    """Per-call options for spawning a subagent."""

    context: str | None = None
    args: tuple[str, ...] = field(default_factory=tuple)
    timeout: float | None = None


@dataclass(frozen=True)
class InvokeResult:
    """Outcome of a subagent invocation.

    ``ok`` is derived from the exit code alone. A timed-out child reports
    ``TIMEOUT_EXIT_CODE`` whatever its own exit status was.
    """

    ok: bool
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def output(self) -> str:
        return self.stdout
