"""
Agent Definition Models

Immutable descriptors for an agent: its identity, declared options and
environment, the primary ``execute`` capability and any auxiliary tools
exposed in server mode. ``ExecuteContext`` is the per-execution (or
per-tool-call) view handed to business logic.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Union

from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.invocation import InvokeOptions, InvokeResult
from sfa.core.domain.safety import SafetyState

if TYPE_CHECKING:
    from sfa.core.interfaces.invoker import InvokerProtocol

OptionType = Literal["string", "number", "boolean"]
TrustLevel = Literal["sandboxed", "local", "network", "privileged"]
ContextRetention = Literal["none", "session", "permanent"]

HandlerReturn = Union["AgentResult", str, dict[str, Any]]
ExecuteFn = Callable[["ExecuteContext"], Awaitable[HandlerReturn]]
ToolHandler = Callable[[dict[str, Any], "ExecuteContext"], Awaitable[HandlerReturn]]


@dataclass(frozen=True)
class AgentOption:
    """Custom command-line option declared by an agent."""

    name: str
    description: str
    type: OptionType = "string"
    alias: str | None = None
    default: str | float | bool | None = None
    required: bool = False


@dataclass(frozen=True)
class EnvDeclaration:
    """Environment variable an agent needs."""

    name: str
    required: bool = False
    secret: bool = False
    default: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ToolDefinition:
    """Auxiliary tool served alongside the agent's primary capability."""

    name: str
    description: str
    handler: ToolHandler
    input_schema: dict[str, Any] | None = None


@dataclass(frozen=True)
class AgentResult:
    """Result returned from an execute function or tool handler."""

    result: str | dict[str, Any]
    metadata: dict[str, Any] | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def coerce(cls, value: HandlerReturn) -> "AgentResult":
        """Wrap a bare ``str``/``dict`` handler return value."""
        if isinstance(value, AgentResult):
            return value
        if isinstance(value, (str, dict)):
            return cls(result=value)
        raise TypeError(f"Handler returned unsupported type: {type(value).__name__}")

    def text(self) -> str:
        """Render ``result`` as a single text payload."""
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False)


@dataclass(frozen=True)
class AgentDefinition:
    """Everything needed to run an agent once or serve it as tools."""

    name: str
    version: str
    description: str
    execute: ExecuteFn
    options: tuple[AgentOption, ...] = field(default_factory=tuple)
    env: tuple[EnvDeclaration, ...] = field(default_factory=tuple)
    tools: tuple[ToolDefinition, ...] = field(default_factory=tuple)
    context_required: bool = False
    mcp_supported: bool = False
    trust_level: TrustLevel = "sandboxed"
    examples: tuple[str, ...] = field(default_factory=tuple)
    context_retention: ContextRetention = "none"

    def find_tool(self, name: str) -> ToolDefinition | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


@dataclass
class ExecuteContext:
    """
    Execution-scoped view passed to business logic.

    One instance exists per top-level execution or per tool call, so any
    scratch state hung off it is never shared between concurrent calls.
    The SafetyState is shared read-only; ``invoke`` forwards it together
    with the scope's remaining budget.
    """

    input: str
    options: dict[str, Any]
    env: Mapping[str, str]
    config: dict[str, Any]
    scope: CancellationScope
    safety: SafetyState
    agent_name: str
    agent_version: str
    invoker: "InvokerProtocol"
    progress_fn: Callable[[str], None]
    scratch: dict[str, Any] = field(default_factory=dict)

    @property
    def depth(self) -> int:
        return self.safety.depth

    @property
    def session_id(self) -> str:
        return self.safety.session_id

    @property
    def call_chain(self) -> tuple[str, ...]:
        return self.safety.call_chain

    def progress(self, message: str) -> None:
        self.progress_fn(message)

    async def invoke(
        self,
        agent_name: str,
        options: InvokeOptions | None = None,
        *,
        context: str | None = None,
        args: list[str] | tuple[str, ...] | None = None,
        timeout: float | None = None,
    ) -> InvokeResult:
        """Spawn another agent as a child of this execution."""
        if options is None:
            options = InvokeOptions(context=context, args=tuple(args or ()), timeout=timeout)
        return await self.invoker.invoke(
            agent_name,
            self.safety,
            self.scope.remaining_ms(),
            self.scope,
            options,
        )
