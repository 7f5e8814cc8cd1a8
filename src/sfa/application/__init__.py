"""Application layer: invocation, execution and tool catalog use cases."""

from sfa.application.executor import AgentExecutor, ExecutionOutcome
from sfa.application.invoker import SubagentInvoker
from sfa.application.tool_catalog import build_primary_tool_schema, build_tool_list

__all__ = [
    "AgentExecutor",
    "ExecutionOutcome",
    "SubagentInvoker",
    "build_primary_tool_schema",
    "build_tool_list",
]
