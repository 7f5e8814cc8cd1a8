"""Build ExecuteContext instances for one execution or one tool call."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sfa.core.domain.agent_definition import AgentDefinition, ExecuteContext, HandlerReturn
from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.safety import SafetyState
from sfa.core.interfaces.invoker import InvokerProtocol
from sfa.core.interfaces.progress import ProgressProtocol
from sfa.infrastructure.logging.progress import emit_progress


def build_execute_context(
    definition: AgentDefinition,
    *,
    input_text: str,
    options: Mapping[str, Any],
    env: Mapping[str, str],
    config: Mapping[str, Any],
    scope: CancellationScope,
    safety: SafetyState,
    invoker: InvokerProtocol,
    progress: ProgressProtocol,
) -> ExecuteContext:
    """
    Fresh context bound to ``scope``.

    Options and config are copied so handlers running concurrently never
    share a mutable mapping.
    """
    return ExecuteContext(
        input=input_text,
        options=dict(options),
        env=env,
        config=dict(config),
        scope=scope,
        safety=safety,
        agent_name=definition.name,
        agent_version=definition.version,
        invoker=invoker,
        progress_fn=lambda message: emit_progress(progress, definition.name, message),
    )


async def call_handler(
    definition: AgentDefinition,
    ctx: ExecuteContext,
    *,
    tool_name: str | None = None,
    arguments: Mapping[str, Any] | None = None,
) -> HandlerReturn:
    """Await the primary ``execute`` or the named auxiliary tool."""
    if tool_name is None or tool_name == definition.name:
        return await definition.execute(ctx)
    tool = definition.find_tool(tool_name)
    if tool is None:
        raise LookupError(f"Unknown tool: {tool_name}")
    return await tool.handler(dict(arguments or {}), ctx)
