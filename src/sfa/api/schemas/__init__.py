"""Wire schemas for the tool-server transport."""

from sfa.api.schemas.jsonrpc import (
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    TextContent,
    ToolCallResult,
    encode_message,
    parse_request,
)

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "TextContent",
    "ToolCallResult",
    "encode_message",
    "parse_request",
]
