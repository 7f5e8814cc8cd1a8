"""
Unit tests for SubagentInvoker.

Guardrail tests patch the subprocess factory to prove nothing is spawned;
the remaining tests run real child scripts under the current interpreter.
"""

import asyncio
import json
import os
import time
from unittest.mock import MagicMock, patch

import pytest

from sfa.application.invoker import SubagentInvoker, _normalize_returncode
from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.errors import (
    DepthExceededError,
    InvocationCancelledError,
    LoopDetectedError,
    ProcessSpawnError,
)
from sfa.core.domain.invocation import TIMEOUT_EXIT_CODE, InvokeOptions
from sfa.core.domain.safety import SafetyState
from sfa.infrastructure.runtime.process_registry import ChildProcessRegistry

ENV_DUMP = """
import json, os, sys
json.dump(dict(os.environ), sys.stdout)
"""

ECHO_STDIN = """
import sys
data = sys.stdin.read()
sys.stdout.write("got:" + data)
sys.stderr.write("diagnostic")
"""

SLEEPER = """
import time
time.sleep(10)
print("finished")
"""

STUBBORN = """
import signal, sys, time
signal.signal(signal.SIGTERM, signal.SIG_IGN)
print("ready", flush=True)
time.sleep(30)
"""



async def _exited(pid, within=3.0):
    deadline = time.monotonic() + within
    while time.monotonic() < deadline:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        await asyncio.sleep(0.05)
    return False


@pytest.fixture
def registry():
    registry = ChildProcessRegistry()
    with patch("sfa.infrastructure.runtime.process_registry.atexit.register"):
        yield registry


@pytest.fixture
def invoker(registry):
    environ = dict(os.environ)
    environ["MY_SECRET"] = "x"
    return SubagentInvoker(registry, kill_grace_seconds=0.5, environ=environ)


class TestGuardrails:
    """Guardrail failures happen before any process exists."""

    async def test_loop_detected_spawns_nothing(self, invoker):
        state = SafetyState(depth=1, max_depth=5, call_chain=("root", "target"), session_id="s")
        with patch("asyncio.create_subprocess_exec") as spawn:
            with pytest.raises(LoopDetectedError):
                await invoker.invoke("target", state, None, None)
        assert spawn.call_count == 0

    async def test_depth_exceeded_spawns_nothing(self, invoker):
        state = SafetyState(depth=4, max_depth=5, call_chain=("a",), session_id="s")
        with patch("asyncio.create_subprocess_exec") as spawn:
            with pytest.raises(DepthExceededError):
                await invoker.invoke("b", state, None, None)
        assert spawn.call_count == 0

    async def test_depth_checked_before_loop(self, invoker):
        state = SafetyState(depth=4, max_depth=5, call_chain=("a",), session_id="s")
        with pytest.raises(DepthExceededError):
            await invoker.invoke("a", state, None, None)

    async def test_cancelled_scope_refuses_to_spawn(self, invoker, safety):
        async with CancellationScope() as scope:
            scope.cancel()
            with patch("asyncio.create_subprocess_exec") as spawn:
                with pytest.raises(InvocationCancelledError):
                    await invoker.invoke("child", safety, None, scope)
        assert spawn.call_count == 0


class TestChildEnvironment:
    async def test_secrets_filtered_and_coordination_forwarded(self, invoker, safety, make_script):
        script = make_script("env_dump", ENV_DUMP)

        result = await invoker.invoke(str(script), safety, None, None)

        assert result.ok is True
        env = json.loads(result.stdout)
        assert "MY_SECRET" not in env
        assert env["SFA_SESSION_ID"] == "session-123"
        assert env["SFA_DEPTH"] == "1"
        assert env["SFA_MAX_DEPTH"] == "5"
        assert env["SFA_CALL_CHAIN"] == "parent"
        assert "PATH" in env

    def test_build_child_env_overrides_inherited_depth(self, registry, safety):
        invoker = SubagentInvoker(registry, environ={"SFA_DEPTH": "9", "PATH": "/bin", "TOKEN": "t"})
        env = invoker.build_child_env(safety)
        assert env["SFA_DEPTH"] == "1"
        assert env["PATH"] == "/bin"
        assert "TOKEN" not in env


class TestLifecycle:
    async def test_context_fed_on_stdin_and_output_captured(self, invoker, safety, make_script, registry):
        script = make_script("echo_stdin", ECHO_STDIN)

        result = await invoker.invoke(str(script), safety, None, None, InvokeOptions(context="hello"))

        assert result.ok is True
        assert result.exit_code == 0
        assert result.stdout == "got:hello"
        assert result.output == "got:hello"
        assert result.stderr == "diagnostic"
        assert len(registry) == 0

    async def test_no_context_means_empty_stdin(self, invoker, safety, make_script):
        script = make_script("echo_stdin", ECHO_STDIN)
        result = await invoker.invoke(str(script), safety, None, None)
        assert result.stdout == "got:"

    async def test_args_passed_and_nonzero_exit(self, invoker, safety, make_script):
        script = make_script("exit_with", "import sys\nprint(sys.argv[1:])\nsys.exit(7)\n")

        result = await invoker.invoke(str(script), safety, None, None, InvokeOptions(args=("--flag", "v")))

        assert result.ok is False
        assert result.exit_code == 7
        assert "['--flag', 'v']" in result.stdout

    async def test_missing_executable(self, invoker, safety, tmp_path):
        with pytest.raises(ProcessSpawnError, match="Failed to invoke"):
            await invoker.invoke(str(tmp_path / "does-not-exist"), safety, None, None)

    async def test_not_executable(self, invoker, safety, tmp_path):
        path = tmp_path / "plain.txt"
        path.write_text("hello")
        with pytest.raises(ProcessSpawnError):
            await invoker.invoke(str(path), safety, None, None)


class TestTimeouts:
    async def test_timeout_reports_sentinel(self, invoker, safety, make_script, registry):
        script = make_script("sleeper", SLEEPER)
        started = time.monotonic()

        result = await invoker.invoke(str(script), safety, None, None, InvokeOptions(timeout=0.5))

        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert result.ok is False
        assert result.timed_out is True
        assert time.monotonic() - started < 6
        assert len(registry) == 0

    async def test_remaining_budget_used_without_override(self, invoker, safety, make_script):
        script = make_script("sleeper", SLEEPER)

        result = await invoker.invoke(str(script), safety, 300, None)

        assert result.exit_code == TIMEOUT_EXIT_CODE

    async def test_kill_escalation_for_stubborn_child(self, invoker, safety, make_script):
        script = make_script("stubborn", STUBBORN)
        started = time.monotonic()

        result = await invoker.invoke(str(script), safety, None, None, InvokeOptions(timeout=1))

        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert time.monotonic() - started < 10

    def test_effective_timeout(self):
        assert SubagentInvoker.effective_timeout(InvokeOptions(timeout=2), 9000) == 2
        assert SubagentInvoker.effective_timeout(InvokeOptions(), 1500) == 1.5
        assert SubagentInvoker.effective_timeout(InvokeOptions(), None) is None


class TestCancellation:
    async def test_caller_cancel_terminates_child(self, invoker, safety, make_script):
        script = make_script("sleeper", SLEEPER)

        async with CancellationScope() as scope:
            asyncio.get_running_loop().call_later(0.3, scope.cancel)
            started = time.monotonic()
            result = await invoker.invoke(str(script), safety, None, scope)

        assert result.ok is False
        assert result.exit_code == 143
        assert time.monotonic() - started < 5

    async def test_caller_timeout_reports_timeout(self, invoker, safety, make_script):
        script = make_script("sleeper", SLEEPER)

        async with CancellationScope(0.3) as scope:
            result = await invoker.invoke(str(script), safety, None, scope)

        assert result.exit_code == TIMEOUT_EXIT_CODE

    async def test_task_cancellation_propagates(self, invoker, safety, make_script, registry):
        script = make_script("sleeper", SLEEPER)

        task = asyncio.ensure_future(invoker.invoke(str(script), safety, None, None))
        await asyncio.sleep(0.3)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(registry) == 0

    async def test_task_cancellation_kills_stubborn_child(self, invoker, safety, make_script, registry):
        script = make_script("stubborn", STUBBORN)

        task = asyncio.ensure_future(invoker.invoke(str(script), safety, None, None))
        await asyncio.sleep(0.5)
        (pid,) = registry.snapshot()
        started = time.monotonic()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert time.monotonic() - started < 3
        assert len(registry) == 0
        assert await _exited(pid)


class TestRegistryAndCodes:
    async def test_child_registered_while_running(self, safety, make_script):
        registry = MagicMock()
        invoker = SubagentInvoker(registry, kill_grace_seconds=0.5)
        script = make_script("quick", "print('hi')\n")

        await invoker.invoke(str(script), safety, None, None)

        registry.register.assert_called_once()
        pid = registry.register.call_args.args[0]
        registry.unregister.assert_called_once_with(pid)

    def test_normalize_returncode(self):
        assert _normalize_returncode(0) == 0
        assert _normalize_returncode(2) == 2
        assert _normalize_returncode(-15) == 143
        assert _normalize_returncode(-9) == 137
        assert _normalize_returncode(None) == 1
