"""Domain-specific exception types for single-file agents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

LOOP_ARROW = " → "


@dataclass
class SfaError(Exception):
    """Base exception for agent runtime errors."""

    message: str
    code: str = "sfa_error"
    details: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}

    def __str__(self) -> str:
        return self.message


class GuardrailViolation(SfaError):
    """Recursion guardrail refused an invocation. Never retried."""


class DepthExceededError(GuardrailViolation):
    """Spawning a child would reach or exceed the maximum depth."""

    def __init__(self, depth: int, max_depth: int) -> None:
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(
            message=(
                f"Maximum invocation depth reached ({max_depth}). "
                f"Cannot spawn subagent at depth {depth + 1}."
            ),
            code="depth_exceeded",
            details={"depth": depth, "max_depth": max_depth},
        )


class LoopDetectedError(GuardrailViolation):
    """An agent name would appear twice in one call chain."""

    def __init__(self, chain: list[str], agent_name: str) -> None:
        self.chain = [*chain, agent_name]
        self.agent_name = agent_name
        super().__init__(
            message=f"Loop detected: {LOOP_ARROW.join(self.chain)}",
            code="loop_detected",
            details={"call_chain": list(self.chain), "agent": agent_name},
        )


class TimeoutExceededError(SfaError):
    """A unit of work ran past its deadline."""

    def __init__(self, timeout_seconds: float | None, *, details: Dict[str, Any] | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message=f"Timeout after {format_seconds(timeout_seconds)}s",
            code="timeout",
            details=details,
        )


class TransportError(SfaError):
    """Malformed protocol message on the wire."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="transport_error", details=details)


class HandlerError(SfaError):
    """Business logic raised inside an execute function or tool handler."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if tool_name:
            details.setdefault("tool_name", tool_name)
        self.tool_name = tool_name
        super().__init__(message=message, code="handler_failure", details=details)


class ProcessSpawnError(SfaError):
    """Target executable is missing or cannot be executed."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        super().__init__(
            message=f"Failed to invoke {target}: {reason}",
            code="spawn_failed",
            details={"target": target, "reason": reason},
        )


class InvocationCancelledError(SfaError):
    """The caller's scope was already cancelled before a child could start."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="cancelled", details=details)


class ConfigError(SfaError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)


class UsageError(SfaError):
    """Invalid command-line usage or missing required input."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="invalid_usage", details=details)


def format_seconds(value: float | None) -> str:
    if value is None:
        return "?"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
