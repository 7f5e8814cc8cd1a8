"""
Core Domain Enums

Defines exit codes, server lifecycle states, protocol error codes and
cancellation reasons to eliminate magic numbers and strings throughout
the codebase.
"""

from enum import Enum, IntEnum


class ExitCode(IntEnum):
    """Standard process exit codes shared by every agent."""

    SUCCESS = 0
    FAILURE = 1
    INVALID_USAGE = 2
    TIMEOUT = 3
    PERMISSION_DENIED = 4
    SIGINT = 130
    SIGTERM = 143


class ServerState(str, Enum):
    """Lifecycle of the tool server."""

    IDLE = "idle"
    SERVING = "serving"
    DRAINING = "draining"
    TERMINATED = "terminated"


class JsonRpcErrorCode(IntEnum):
    """JSON-RPC 2.0 protocol error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class CancelReason(str, Enum):
    """Why a cancellation scope fired."""

    TIMEOUT = "timeout"
    INTERRUPT = "interrupt"
    TERMINATE = "terminate"
    CALLER = "caller"


class OutputFormat(str, Enum):
    """Result rendering for single-execution mode."""

    TEXT = "text"
    JSON = "json"
