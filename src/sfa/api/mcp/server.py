"""
Tool Server

Serves one agent over line-delimited JSON-RPC on stdin/stdout. The read
loop is sequential; every ``tools/call`` runs as its own task under its
own CancellationScope so slow handlers never block the next read.

Lifecycle: Idle -> Serving -> Draining -> Terminated. Draining starts on
end of input or SIGINT/SIGTERM and lasts until no call is in flight or
the drain grace window elapses. Nothing is written after Terminated.
"""

from __future__ import annotations

import asyncio
import signal
import time
from collections.abc import Mapping
from typing import Any

import structlog

from sfa.api.mcp.dispatcher import (
    METHOD_INITIALIZE,
    METHOD_PING,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    NOTIFICATION_PREFIX,
    MethodDispatcher,
    ignore_notification,
)
from sfa.api.mcp.framing import LineReader, LineWriter
from sfa.api.schemas.jsonrpc import JsonRpcRequest, JsonRpcResponse, ToolCallResult, parse_request
from sfa.application.context_factory import build_execute_context, call_handler
from sfa.application.tool_catalog import build_tool_list, is_known_tool
from sfa.core.domain.agent_definition import AgentDefinition, AgentResult
from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.enums import ExitCode, JsonRpcErrorCode, ServerState
from sfa.core.domain.errors import TimeoutExceededError, TransportError
from sfa.core.domain.safety import SafetyState
from sfa.core.interfaces.execution_log import ExecutionLogProtocol
from sfa.core.interfaces.invoker import InvokerProtocol
from sfa.core.interfaces.progress import ProgressProtocol
from sfa.core.utils.time import utc_now
from sfa.infrastructure.config.settings import RuntimeSettings
from sfa.infrastructure.logging.execution_log import build_record, record_execution
from sfa.infrastructure.logging.progress import emit_progress
from sfa.infrastructure.runtime.signals import SignalRouter

PROTOCOL_VERSION = "2024-11-05"


class ToolServer:
    """Long-lived JSON-RPC server exposing an agent and its tools."""

    def __init__(
        self,
        definition: AgentDefinition,
        *,
        safety: SafetyState,
        settings: RuntimeSettings,
        invoker: InvokerProtocol,
        execution_log: ExecutionLogProtocol,
        progress: ProgressProtocol,
        reader: asyncio.StreamReader,
        writer: LineWriter,
        env: Mapping[str, str] | None = None,
        config: Mapping[str, Any] | None = None,
        signal_router: SignalRouter | None = None,
    ) -> None:
        self._definition = definition
        self._safety = safety
        self._settings = settings
        self._invoker = invoker
        self._execution_log = execution_log
        self._progress = progress
        self._lines = LineReader(reader)
        self._writer = writer
        self._env = env or {}
        self._config = dict(config or {})
        self._signal_router = signal_router

        self._state = ServerState.IDLE
        self._tools = build_tool_list(definition)
        self._tasks: set[asyncio.Task] = set()
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._stop = asyncio.Event()
        self._exit_code = ExitCode.SUCCESS
        self._logger = structlog.get_logger(__name__).bind(component="tool_server", agent=definition.name)

        self._dispatcher = MethodDispatcher()
        self._dispatcher.register(METHOD_INITIALIZE, self._handle_initialize)
        self._dispatcher.register(METHOD_PING, self._handle_ping)
        self._dispatcher.register(METHOD_TOOLS_LIST, self._handle_tools_list)
        self._dispatcher.register(METHOD_TOOLS_CALL, self._handle_tools_call)
        self._dispatcher.register_prefix(NOTIFICATION_PREFIX, ignore_notification)

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def dispatcher(self) -> MethodDispatcher:
        return self._dispatcher

    def request_shutdown(self) -> None:
        """Begin draining at the next opportunity (idempotent)."""
        if not self._stop.is_set():
            self._logger.info("tool_server.shutdown_requested", state=self._state.value)
        self._stop.set()

    async def serve(self) -> ExitCode:
        """
        Run until end of input or a signal, then drain and terminate.

        Returns SUCCESS after end of input, or 130 / 143 when SIGINT /
        SIGTERM started the drain.
        """
        if self._state is not ServerState.IDLE:
            raise RuntimeError(f"Tool server already {self._state.value}")

        self._state = ServerState.SERVING
        emit_progress(self._progress, self._definition.name, "MCP server started")
        self._logger.info("tool_server.serving", tools=[tool["name"] for tool in self._tools])

        unsubscribe = (
            self._signal_router.subscribe(self._on_signal)
            if self._signal_router is not None
            else None
        )
        try:
            await self._read_loop()
            await self._drain()
        finally:
            if unsubscribe is not None:
                unsubscribe()
        return self._exit_code

    def _on_signal(self, sig: signal.Signals) -> None:
        if not self._stop.is_set():
            self._exit_code = ExitCode.SIGINT if sig == signal.SIGINT else ExitCode.SIGTERM
        self.request_shutdown()

    async def _read_loop(self) -> None:
        stop_waiter = asyncio.ensure_future(self._stop.wait())
        try:
            while not self._stop.is_set():
                read = asyncio.ensure_future(self._lines.read_line())
                await asyncio.wait({read, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not read.done():
                    read.cancel()
                    break
                line = read.result()
                if line is None:
                    self._logger.info("tool_server.end_of_input")
                    break
                self.handle_line(line)
        finally:
            stop_waiter.cancel()

    def handle_line(self, line: bytes | str) -> None:
        """Parse and dispatch one framed line; malformed input is dropped."""
        try:
            request = parse_request(line)
        except TransportError as exc:
            self._logger.debug("tool_server.line_dropped", reason=exc.message)
            return
        response = self._dispatcher.dispatch(request)
        if response is not None:
            self._send(response)

    async def _drain(self) -> None:
        self._state = ServerState.DRAINING
        emit_progress(self._progress, self._definition.name, "MCP server shutting down")
        self._logger.info("tool_server.draining", in_flight=self._in_flight)

        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self._settings.drain_grace_seconds)
        except asyncio.TimeoutError:
            self._logger.warning("tool_server.drain_timeout", in_flight=self._in_flight)

        leftovers = [task for task in self._tasks if not task.done()]
        self._state = ServerState.TERMINATED
        self._writer.close()
        for task in leftovers:
            task.cancel()
        if leftovers:
            await asyncio.wait(leftovers, timeout=self._settings.kill_grace_seconds)
        self._logger.info("tool_server.terminated", abandoned=len(leftovers))

    def _send(self, response: JsonRpcResponse) -> None:
        if self._state is ServerState.TERMINATED:
            self._logger.debug("tool_server.response_suppressed", id=response.id)
            return
        try:
            self._writer.write(response.to_wire())
        except OSError as exc:
            self._logger.warning("tool_server.write_failed", id=response.id, error=str(exc))
            self.request_shutdown()

    # -- method handlers -------------------------------------------------

    def _handle_initialize(self, request: JsonRpcRequest) -> JsonRpcResponse:
        return JsonRpcResponse.success(
            request.id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self._definition.name, "version": self._definition.version},
            },
        )

    def _handle_ping(self, request: JsonRpcRequest) -> JsonRpcResponse:
        return JsonRpcResponse.success(request.id, {})

    def _handle_tools_list(self, request: JsonRpcRequest) -> JsonRpcResponse:
        return JsonRpcResponse.success(request.id, {"tools": self._tools})

    def _handle_tools_call(self, request: JsonRpcRequest) -> JsonRpcResponse | None:
        tool_name = request.params.get("name")
        tool_name = tool_name if isinstance(tool_name, str) else ""
        if not is_known_tool(self._definition, tool_name):
            return JsonRpcResponse.failure(
                request.id,
                JsonRpcErrorCode.INVALID_PARAMS,
                f"Unknown tool: {tool_name}",
            )
        arguments = request.params.get("arguments")
        arguments = dict(arguments) if isinstance(arguments, dict) else {}

        self._in_flight += 1
        self._idle.clear()
        task = asyncio.ensure_future(self._run_tool_call(request, tool_name, arguments))
        self._tasks.add(task)
        task.add_done_callback(self._call_finished)
        return None

    def _call_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._in_flight -= 1
        if self._in_flight == 0:
            self._idle.set()
        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            self._logger.error("tool_server.call_crashed", error=str(exc), error_type=type(exc).__name__)

    # -- per-call execution ----------------------------------------------

    async def _run_tool_call(self, request: JsonRpcRequest, tool_name: str, arguments: dict[str, Any]) -> None:
        log = self._logger.bind(request_id=request.id, tool=tool_name)
        start_time = utc_now()
        started = time.monotonic()
        raw_context = arguments.get("context")
        input_text = "" if raw_context is None else str(raw_context)
        timeout = self._settings.timeout_seconds

        async with CancellationScope(timeout, name=f"{tool_name}:{request.id}") as scope:
            ctx = build_execute_context(
                self._definition,
                input_text=input_text,
                options=arguments,
                env=self._env,
                config=self._config,
                scope=scope,
                safety=self._safety,
                invoker=self._invoker,
                progress=self._progress,
            )
            handler = asyncio.ensure_future(
                call_handler(self._definition, ctx, tool_name=tool_name, arguments=arguments)
            )
            waiter = asyncio.ensure_future(scope.wait())
            try:
                await asyncio.wait({handler, waiter}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                handler.cancel()
                raise
            finally:
                waiter.cancel()

            if scope.timed_out:
                # Once the deadline is observed the outcome is a timeout,
                # even if the handler manages to finish afterwards.
                handler.cancel()
                await asyncio.wait({handler}, timeout=self._settings.kill_grace_seconds)
                if handler.done() and not handler.cancelled():
                    handler.exception()
                text = TimeoutExceededError(timeout).message
                exit_code, is_error = ExitCode.TIMEOUT, True
                log.warning("tool_server.call_timeout", timeout=timeout)
            else:
                try:
                    result = AgentResult.coerce(handler.result())
                    text, exit_code, is_error = result.text(), ExitCode.SUCCESS, False
                except Exception as exc:
                    text = str(exc) or type(exc).__name__
                    exit_code, is_error = ExitCode.FAILURE, True
                    log.warning("tool_server.call_failed", error=text, error_type=type(exc).__name__)

        record_execution(
            self._execution_log,
            build_record(
                agent=self._definition.name,
                version=self._definition.version,
                exit_code=exit_code,
                start_time=start_time,
                started_monotonic=started,
                depth=self._safety.depth,
                call_chain=self._safety.call_chain,
                session_id=self._safety.session_id,
                input_text=input_text,
                output_text=text,
                meta={"mcpTool": tool_name},
            )
        )
        self._send(JsonRpcResponse.success(request.id, ToolCallResult.from_text(text, is_error=is_error).to_wire()))
        log.debug("tool_server.call_completed", exit_code=int(exit_code), is_error=is_error)
