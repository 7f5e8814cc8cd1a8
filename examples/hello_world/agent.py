#!/usr/bin/env python3
"""Minimal agent: greets whatever arrives as input."""

from sfa import AgentDefinition, AgentOption, AgentResult, ExecuteContext, define_agent


async def execute(ctx: ExecuteContext) -> AgentResult:
    greeting = ctx.options.get("greeting", "Hello")
    name = ctx.input.strip() or "world"
    return AgentResult(result=f"{greeting}, {name}!")


AGENT = AgentDefinition(
    name="hello-world",
    version="1.0.0",
    description="A minimal single-file agent that echoes input or says hello",
    execute=execute,
    options=(
        AgentOption(
            name="greeting",
            alias="g",
            description="Custom greeting to use",
            default="Hello",
        ),
    ),
    mcp_supported=True,
    examples=(
        'echo "world" | ./agent.py',
        "./agent.py --context 'Python'",
        "./agent.py --greeting Hi --context 'there'",
    ),
)


if __name__ == "__main__":
    define_agent(AGENT)
