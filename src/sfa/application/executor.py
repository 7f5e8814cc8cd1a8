"""
Agent Executor

Single-execution mode: run an agent's ``execute`` once under a top-level
CancellationScope, map the outcome to a process exit code and write one
execution record.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from sfa.application.context_factory import build_execute_context, call_handler
from sfa.core.domain.agent_definition import AgentDefinition, AgentResult
from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.enums import CancelReason, ExitCode
from sfa.core.domain.errors import format_seconds
from sfa.core.domain.safety import SafetyState
from sfa.core.interfaces.execution_log import ExecutionLogProtocol
from sfa.core.interfaces.invoker import InvokerProtocol
from sfa.core.interfaces.progress import ProgressProtocol
from sfa.core.utils.time import elapsed_ms, utc_now
from sfa.infrastructure.config.settings import RuntimeSettings
from sfa.infrastructure.logging.execution_log import build_record, record_execution
from sfa.infrastructure.logging.progress import emit_progress
from sfa.infrastructure.runtime.signals import SignalRouter, bind_scope_to_signals

_SIGNAL_EXIT_CODES = {
    CancelReason.INTERRUPT: ExitCode.SIGINT,
    CancelReason.TERMINATE: ExitCode.SIGTERM,
}


@dataclass(frozen=True)
class ExecutionOutcome:
    """What single-execution mode hands back to the CLI."""

    exit_code: ExitCode
    result: AgentResult | None = None
    error: str | None = None


class AgentExecutor:
    """Run one agent execution to completion, timeout or signal."""

    def __init__(
        self,
        definition: AgentDefinition,
        *,
        settings: RuntimeSettings,
        invoker: InvokerProtocol,
        execution_log: ExecutionLogProtocol,
        progress: ProgressProtocol,
        signal_router: SignalRouter | None = None,
    ) -> None:
        self._definition = definition
        self._settings = settings
        self._invoker = invoker
        self._execution_log = execution_log
        self._progress = progress
        self._signal_router = signal_router
        self._logger = structlog.get_logger(__name__).bind(component="executor", agent=definition.name)

    async def run(
        self,
        *,
        input_text: str,
        options: Mapping[str, Any],
        env: Mapping[str, str],
        config: Mapping[str, Any],
        safety: SafetyState,
    ) -> ExecutionOutcome:
        """
        Execute the agent once.

        Exit codes: 0 success, 1 handler failure, 3 timeout, 130 after
        SIGINT, 143 after SIGTERM. A timeout cancels the handler at once;
        signals give it the configured grace window first.
        """
        name = self._definition.name
        start_time = utc_now()
        started = time.monotonic()

        async with CancellationScope(self._settings.timeout_seconds, name=f"{name}:execution") as scope:
            if self._signal_router is not None:
                bind_scope_to_signals(scope, self._signal_router)

            ctx = build_execute_context(
                self._definition,
                input_text=input_text,
                options=options,
                env=env,
                config=config,
                scope=scope,
                safety=safety,
                invoker=self._invoker,
                progress=self._progress,
            )
            emit_progress(self._progress, name, "starting")
            self._logger.debug("execution.started", depth=safety.depth, session_id=safety.session_id)

            task = asyncio.ensure_future(call_handler(self._definition, ctx))
            waiter = asyncio.ensure_future(scope.wait())
            try:
                await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()

            if scope.cancelled:
                outcome = await self._settle_cancelled(task, scope)
            else:
                outcome = self._settle_finished(task)

        if outcome.exit_code == ExitCode.SUCCESS:
            emit_progress(self._progress, name, f"completed in {elapsed_ms(started)}ms")
        elif outcome.exit_code == ExitCode.FAILURE:
            emit_progress(self._progress, name, "failed")

        output_text = outcome.result.text() if outcome.result else (outcome.error or "")
        record_execution(
            self._execution_log,
            build_record(
                agent=name,
                version=self._definition.version,
                exit_code=outcome.exit_code,
                start_time=start_time,
                started_monotonic=started,
                depth=safety.depth,
                call_chain=safety.call_chain,
                session_id=safety.session_id,
                input_text=input_text,
                output_text=output_text,
            )
        )
        return outcome

    def _settle_finished(self, task: asyncio.Future) -> ExecutionOutcome:
        try:
            result = AgentResult.coerce(task.result())
        except Exception as exc:
            self._logger.error(
                "execution.failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ExecutionOutcome(ExitCode.FAILURE, error=str(exc) or type(exc).__name__)
        return ExecutionOutcome(ExitCode.SUCCESS, result=result)

    async def _settle_cancelled(self, task: asyncio.Future, scope: CancellationScope) -> ExecutionOutcome:
        name = self._definition.name
        reason = scope.reason

        if reason is CancelReason.TIMEOUT:
            emit_progress(self._progress, name, f"timeout after {format_seconds(scope.timeout)}s")
            self._logger.warning("execution.timeout", timeout=scope.timeout)
            await _cancel_and_wait(task, self._settings.kill_grace_seconds)
            return ExecutionOutcome(ExitCode.TIMEOUT, error=f"Timeout after {format_seconds(scope.timeout)}s")

        if reason is CancelReason.INTERRUPT:
            emit_progress(self._progress, name, "interrupted")
            grace = self._settings.interrupt_grace_seconds
        else:
            emit_progress(self._progress, name, "terminating")
            grace = self._settings.terminate_grace_seconds
        self._logger.warning("execution.signalled", reason=reason.value if reason else None, grace=grace)

        if not task.done():
            await asyncio.wait({task}, timeout=grace)
        await _cancel_and_wait(task, self._settings.kill_grace_seconds)
        exit_code = _SIGNAL_EXIT_CODES.get(reason, ExitCode.SIGTERM)
        return ExecutionOutcome(exit_code, error=f"Cancelled ({reason.value if reason else 'unknown'})")


async def _cancel_and_wait(task: asyncio.Future, bound: float) -> None:
    """Cancel ``task`` and give its cleanup (child termination) a bounded window."""
    if not task.done():
        task.cancel()
        await asyncio.wait({task}, timeout=bound)
    if task.done() and not task.cancelled():
        # Retrieve so a late failure is not reported as "never retrieved".
        task.exception()
