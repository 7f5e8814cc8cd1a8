"""Test configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from sfa.core.domain.agent_definition import AgentDefinition, AgentOption, AgentResult, ExecuteContext
from sfa.core.domain.safety import SafetyState


@pytest.fixture(autouse=True)
def isolated_environ(tmp_path: Path):
    """Start every test without inherited coordination variables or user config."""
    saved = dict(os.environ)
    for key in [key for key in os.environ if key.startswith("SFA_")]:
        del os.environ[key]
    os.environ["SFA_CONFIG"] = str(tmp_path / "no-config.yaml")
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def safety() -> SafetyState:
    return SafetyState(depth=0, max_depth=5, call_chain=("parent",), session_id="session-123")


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write an executable Python script running under the current interpreter."""

    def _make(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return path

    return _make


async def _echo_execute(ctx: ExecuteContext) -> AgentResult:
    return AgentResult(result=f"echo: {ctx.input}")


@pytest.fixture
def echo_agent() -> AgentDefinition:
    return AgentDefinition(
        name="echo-agent",
        version="1.2.3",
        description="Echoes its input",
        execute=_echo_execute,
        options=(
            AgentOption(name="mode", alias="m", description="Echo mode", default="plain"),
            AgentOption(name="count", description="Repeat count", type="number"),
            AgentOption(name="loud", description="Shout", type="boolean"),
        ),
        mcp_supported=True,
    )
