#!/usr/bin/env python3
"""Describes source code structurally; serves an extra ``explain`` tool in MCP mode."""

import re
from typing import Any

from sfa import AgentDefinition, AgentOption, AgentResult, ExecuteContext, ToolDefinition, define_agent

_FEATURES = (
    (re.compile(r"\b(import|require|from|use)\b"), "It imports external dependencies."),
    (re.compile(r"\b(class|struct|interface)\s+"), "It defines a class or interface."),
    (re.compile(r"\b(def|function|func)\s+"), "It defines one or more functions."),
    (re.compile(r"\b(async|await)\b"), "It uses asynchronous operations."),
    (re.compile(r"\b(for|while)\b"), "It contains iteration logic."),
    (re.compile(r"\b(if|else|switch|match|case)\b"), "It includes conditional branching."),
)


def summarize(code: str, detail: str = "brief") -> str:
    lines = [line for line in code.splitlines() if line.strip()]
    parts = [f"This code is {len(lines)} line(s) long."]
    parts.extend(text for pattern, text in _FEATURES if pattern.search(code))
    if detail == "detailed":
        parts.append(f"Structure: {len(lines)} lines, {len(code)} characters.")
    return " ".join(parts)


async def execute(ctx: ExecuteContext) -> AgentResult:
    ctx.progress("analysing input")
    return AgentResult(result=summarize(ctx.input, ctx.options.get("detail", "brief")))


async def explain(arguments: dict[str, Any], ctx: ExecuteContext) -> AgentResult:
    code = arguments.get("code")
    if not isinstance(code, str) or not code:
        raise ValueError("'code' is required")
    ctx.progress("explaining code")
    return AgentResult(result=summarize(code, arguments.get("detail", "brief")))


AGENT = AgentDefinition(
    name="code-explainer",
    version="1.0.0",
    description="Explains the structure of a piece of code",
    execute=execute,
    options=(
        AgentOption(name="detail", alias="d", description="brief or detailed", default="brief"),
    ),
    tools=(
        ToolDefinition(
            name="explain",
            description="Explain what a piece of code does in plain language",
            handler=explain,
            input_schema={
                "type": "object",
                "properties": {
                    "code": {"type": "string", "description": "The code to explain"},
                    "detail": {"type": "string", "enum": ["brief", "detailed"]},
                },
                "required": ["code"],
            },
        ),
    ),
    context_required=True,
    mcp_supported=True,
    context_retention="session",
    examples=(
        "./agent.py --context-file app.py",
        "./agent.py --mcp",
    ),
)


if __name__ == "__main__":
    define_agent(AGENT)
