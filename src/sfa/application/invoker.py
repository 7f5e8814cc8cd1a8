"""
Subagent Invoker

Spawns another agent as a subprocess under a derived SafetyState and the
caller's CancellationScope. Guardrails run before any process exists; the
child only ever sees the coordination namespace plus a small allow-list of
system variables.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Mapping

import structlog

from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.enums import CancelReason
from sfa.core.domain.errors import InvocationCancelledError, ProcessSpawnError
from sfa.core.domain.invocation import TIMEOUT_EXIT_CODE, InvokeOptions, InvokeResult
from sfa.core.domain.safety import SafetyState, check_depth_limit, check_loop, derive_child
from sfa.core.interfaces.invoker import InvokerProtocol
from sfa.infrastructure.config.env_resolver import build_subagent_env
from sfa.infrastructure.runtime.process_registry import ChildProcessRegistry, get_process_registry

DEFAULT_KILL_GRACE_SECONDS = 5.0


class SubagentInvoker(InvokerProtocol):
    """Run agents as child processes with timeout and cancellation handling."""

    def __init__(
        self,
        registry: ChildProcessRegistry | None = None,
        *,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._registry = registry if registry is not None else get_process_registry()
        self._kill_grace_seconds = kill_grace_seconds
        self._environ = environ
        self._logger = structlog.get_logger(__name__).bind(component="invoker")

    def build_child_env(self, caller_safety: SafetyState) -> dict[str, str]:
        """Filtered parent environment overlaid with the derived child state."""
        environ = self._environ if self._environ is not None else os.environ
        env = build_subagent_env(environ)
        env.update(derive_child(caller_safety).to_env())
        return env

    @staticmethod
    def effective_timeout(options: InvokeOptions, remaining_budget_ms: int | None) -> float | None:
        """Per-call override, else the caller's remaining budget, else unbounded."""
        if options.timeout is not None:
            return float(options.timeout)
        if remaining_budget_ms is not None:
            return max(remaining_budget_ms, 0) / 1000
        return None

    async def invoke(
        self,
        target_name: str,
        caller_safety: SafetyState,
        remaining_budget_ms: int | None,
        cancel_scope: CancellationScope | None,
        options: InvokeOptions | None = None,
    ) -> InvokeResult:
        """
        Spawn ``target_name`` and wait for it to exit.

        Args:
            target_name: Executable name (looked up on PATH) or path.
            caller_safety: SafetyState of the calling process.
            remaining_budget_ms: Caller's remaining time, used when no
                per-call timeout is given.
            cancel_scope: Caller's scope; cancelling it terminates the child.
            options: Context, extra arguments and per-call timeout.

        Returns:
            InvokeResult with captured stdout/stderr. A timed-out child
            reports ``TIMEOUT_EXIT_CODE``.

        Raises:
            DepthExceededError: Child would reach the maximum depth.
            LoopDetectedError: Target already appears in the call chain.
            InvocationCancelledError: The scope fired before spawning.
            ProcessSpawnError: Executable missing or not runnable.
        """
        options = options or InvokeOptions()

        check_depth_limit(caller_safety)
        check_loop(caller_safety, target_name)

        if cancel_scope is not None and cancel_scope.cancelled:
            raise InvocationCancelledError(
                f"Not invoking {target_name}: caller already cancelled",
                details={"target": target_name, "reason": cancel_scope.reason.value if cancel_scope.reason else None},
            )

        env = self.build_child_env(caller_safety)
        timeout = self.effective_timeout(options, remaining_budget_ms)
        stdin_data = options.context.encode("utf-8") if options.context is not None else None

        try:
            process = await asyncio.create_subprocess_exec(
                target_name,
                *options.args,
                stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise ProcessSpawnError(target_name, exc.strerror or str(exc)) from exc

        self._registry.register(process.pid)
        self._logger.info(
            "invoker.spawned",
            target=target_name,
            pid=process.pid,
            depth=caller_safety.depth + 1,
            timeout=timeout,
            session_id=caller_safety.session_id,
        )

        kill_handles: list[asyncio.TimerHandle] = []
        cancelled_by: list[CancelReason] = []

        def on_scope_cancel(reason: CancelReason) -> None:
            cancelled_by.append(reason)
            self._logger.info("invoker.caller_cancelled", target=target_name, pid=process.pid, reason=reason.value)
            kill_handles.append(self._escalate(process))

        remove_callback = cancel_scope.add_callback(on_scope_cancel) if cancel_scope else (lambda: None)

        timed_out = False
        communicate = asyncio.ensure_future(process.communicate(stdin_data))
        try:
            done, _ = await asyncio.wait({communicate}, timeout=timeout)
            if not done:
                timed_out = True
                self._logger.warning("invoker.timeout", target=target_name, pid=process.pid, timeout=timeout)
                kill_handles.append(self._escalate(process))
            stdout, stderr = await communicate
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled; the child must not outlive it.
            communicate.cancel()
            try:
                await self._reap(process)
            finally:
                self._registry.unregister(process.pid)
            raise
        finally:
            remove_callback()
            for handle in kill_handles:
                handle.cancel()
            if process.returncode is not None:
                self._registry.unregister(process.pid)

        if cancelled_by and cancelled_by[0] is CancelReason.TIMEOUT:
            timed_out = True

        exit_code = TIMEOUT_EXIT_CODE if timed_out else _normalize_returncode(process.returncode)
        self._logger.info(
            "invoker.completed",
            target=target_name,
            pid=process.pid,
            exit_code=exit_code,
            timed_out=timed_out,
        )
        return InvokeResult(
            ok=exit_code == 0,
            exit_code=exit_code,
            stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
            timed_out=timed_out,
        )

    def _escalate(self, process: asyncio.subprocess.Process) -> asyncio.TimerHandle:
        """SIGTERM now, SIGKILL once the grace window passes."""
        _send(process.terminate, process)
        loop = asyncio.get_running_loop()
        return loop.call_later(self._kill_grace_seconds, self._kill, process)

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL if the child outlives the grace window or we are cancelled again."""
        _send(process.terminate, process)
        try:
            await asyncio.wait_for(asyncio.shield(process.wait()), timeout=self._kill_grace_seconds)
        except asyncio.TimeoutError:
            self._kill(process)
        except asyncio.CancelledError:
            self._kill(process)
            raise

    def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            self._logger.warning("invoker.kill_escalation", pid=process.pid)
        _send(process.kill, process)


def _send(action, process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        action()


def _normalize_returncode(returncode: int | None) -> int:
    """Map "killed by signal N" (negative on POSIX) to the shell's 128+N."""
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode
