"""
Domain Models and Business Logic

This package contains the core domain models for single-file agents:
- Recursion safety state and guardrails
- Cancellation scopes
- Invocation requests and results
- Agent definitions and execution contexts
"""

from sfa.core.domain.agent_definition import (
    AgentDefinition,
    AgentOption,
    AgentResult,
    EnvDeclaration,
    ExecuteContext,
    ToolDefinition,
)
from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.invocation import InvokeOptions, InvokeResult
from sfa.core.domain.safety import SafetyState

__all__ = [
    "AgentDefinition",
    "AgentOption",
    "AgentResult",
    "CancellationScope",
    "EnvDeclaration",
    "ExecuteContext",
    "InvokeOptions",
    "InvokeResult",
    "SafetyState",
    "ToolDefinition",
]
