"""
Single-file agents.

Build small, single-purpose executables that compose safely into call
trees, either run once from the command line or served over stdio
JSON-RPC.
"""

from sfa.api.cli.runner import define_agent
from sfa.core.domain.agent_definition import (
    AgentDefinition,
    AgentOption,
    AgentResult,
    EnvDeclaration,
    ExecuteContext,
    ToolDefinition,
)
from sfa.core.domain.enums import ExitCode
from sfa.core.domain.invocation import InvokeOptions, InvokeResult

__version__ = "0.1.0"

__all__ = [
    "AgentDefinition",
    "AgentOption",
    "AgentResult",
    "EnvDeclaration",
    "ExecuteContext",
    "ExitCode",
    "InvokeOptions",
    "InvokeResult",
    "ToolDefinition",
    "__version__",
    "define_agent",
]
