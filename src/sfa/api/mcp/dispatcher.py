"""
Method dispatch table.

Maps JSON-RPC method names (or method-name prefixes such as
``notifications/``) to handlers. Everything unmatched falls into a single
"method not found" branch, answered only when the request carries an id.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from sfa.api.schemas.jsonrpc import JsonRpcRequest, JsonRpcResponse
from sfa.core.domain.enums import JsonRpcErrorCode

logger = structlog.get_logger(__name__)

MethodHandler = Callable[[JsonRpcRequest], "JsonRpcResponse | None"]

METHOD_INITIALIZE = "initialize"
METHOD_PING = "ping"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"
NOTIFICATION_PREFIX = "notifications/"


def method_not_found(request: JsonRpcRequest) -> JsonRpcResponse | None:
    if request.is_notification:
        return None
    return JsonRpcResponse.failure(
        request.id,
        JsonRpcErrorCode.METHOD_NOT_FOUND,
        f"Method not found: {request.method}",
    )


def ignore_notification(request: JsonRpcRequest) -> None:
    logger.debug("dispatcher.notification", method=request.method)
    return None


class MethodDispatcher:
    """Exact-name handlers first, then prefix handlers, then not-found."""

    def __init__(self) -> None:
        self._handlers: dict[str, MethodHandler] = {}
        self._prefix_handlers: list[tuple[str, MethodHandler]] = []

    def register(self, method: str, handler: MethodHandler) -> None:
        self._handlers[method] = handler

    def register_prefix(self, prefix: str, handler: MethodHandler) -> None:
        self._prefix_handlers.append((prefix, handler))

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    def resolve(self, method: str) -> MethodHandler | None:
        handler = self._handlers.get(method)
        if handler is not None:
            return handler
        for prefix, prefix_handler in self._prefix_handlers:
            if method.startswith(prefix):
                return prefix_handler
        return None

    def dispatch(self, request: JsonRpcRequest) -> JsonRpcResponse | None:
        """Run the matching handler; ``None`` means nothing is sent back now."""
        handler = self.resolve(request.method)
        if handler is None:
            logger.debug("dispatcher.method_not_found", method=request.method, id=request.id)
            return method_not_found(request)
        return handler(request)
