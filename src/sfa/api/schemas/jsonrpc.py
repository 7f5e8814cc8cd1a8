"""
JSON-RPC 2.0 Wire Schemas
=========================

Pydantic models for the line-delimited transport used in server mode,
plus the MCP tool-call result shape.

Requests are parsed leniently (unknown members ignored) but must carry
``jsonrpc: "2.0"`` and a non-empty ``method``; anything else is a
TransportError which the server drops.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sfa.core.domain.enums import JsonRpcErrorCode
from sfa.core.domain.errors import TransportError

JSONRPC_VERSION = "2.0"

RequestId = int | float | str


class JsonRpcRequest(BaseModel):
    """Incoming request or notification."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    jsonrpc: Literal["2.0"]
    method: str = Field(..., min_length=1)
    id: RequestId | None = None
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _params_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcError(BaseModel):
    """Error member of a response."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(BaseModel):
    """Outgoing response carrying exactly one of ``result`` / ``error``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId | None = None
    result: Any | None = None
    error: JsonRpcError | None = None

    @classmethod
    def success(cls, request_id: RequestId | None, result: Any) -> "JsonRpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: RequestId | None,
        code: JsonRpcErrorCode | int,
        message: str,
        data: Any | None = None,
    ) -> "JsonRpcResponse":
        return cls(id=request_id, error=JsonRpcError(code=int(code), message=message, data=data))

    def to_wire(self) -> dict[str, Any]:
        """Plain dict as sent on the wire (no ``null`` result/error members)."""
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result if self.result is not None else {}
        return payload


class TextContent(BaseModel):
    """One MCP text content item."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolCallResult(BaseModel):
    """``tools/call`` result; handler failures set ``isError``."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    content: list[TextContent]
    is_error: bool = Field(False, alias="isError")

    @classmethod
    def from_text(cls, text: str, *, is_error: bool = False) -> "ToolCallResult":
        return cls(content=[TextContent(text=text)], is_error=is_error)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_request(line: bytes | str) -> JsonRpcRequest:
    """
    Parse one framed line.

    Raises:
        TransportError: If the line is not JSON, not an object, or not a
            JSON-RPC 2.0 message with a method.
    """
    try:
        payload = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TransportError("Malformed JSON line", details={"error": str(exc)}) from exc
    if not isinstance(payload, dict):
        raise TransportError("JSON-RPC message must be an object", details={"type": type(payload).__name__})
    try:
        return JsonRpcRequest.model_validate(payload)
    except ValidationError as exc:
        raise TransportError(
            "Not a JSON-RPC 2.0 request",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def encode_message(payload: dict[str, Any]) -> bytes:
    """Serialise one message as a single UTF-8 line."""
    return (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")
