"""
Core Protocol Interfaces

Contracts for the collaborators the runtime consumes: diagnostics logging,
execution records, the progress side channel and subagent invocation.
"""

from sfa.core.interfaces.execution_log import ExecutionLogProtocol, ExecutionRecord
from sfa.core.interfaces.invoker import InvokerProtocol
from sfa.core.interfaces.logging import LoggerProtocol
from sfa.core.interfaces.progress import ProgressProtocol

__all__ = [
    "ExecutionLogProtocol",
    "ExecutionRecord",
    "InvokerProtocol",
    "LoggerProtocol",
    "ProgressProtocol",
]
