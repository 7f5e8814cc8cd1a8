#!/usr/bin/env python3
"""
Calls the hello-world agent once per input line.

Expects ``hello-world`` on PATH (or pass ``--target`` with a path to it).
The child runs one level deeper in the same session.
"""

from sfa import AgentDefinition, AgentOption, AgentResult, ExecuteContext, define_agent


async def execute(ctx: ExecuteContext) -> AgentResult:
    target = ctx.options.get("target", "hello-world")
    names = [line.strip() for line in ctx.input.splitlines() if line.strip()] or ["world"]

    greetings: list[str] = []
    warnings: list[str] = []
    for name in names:
        ctx.progress(f"invoking {target} for {name}")
        result = await ctx.invoke(target, context=name, args=["--quiet", "--no-log"])
        if result.ok:
            greetings.append(result.output.strip())
        else:
            warnings.append(f"{target} exited with {result.exit_code}: {result.stderr.strip()}")

    return AgentResult(
        result={"greetings": greetings},
        metadata={"depth": ctx.depth, "session_id": ctx.session_id},
        warnings=warnings,
    )


AGENT = AgentDefinition(
    name="greeting-pipeline",
    version="1.0.0",
    description="Greets every input line through the hello-world subagent",
    execute=execute,
    options=(
        AgentOption(name="target", alias="t", description="Agent executable to invoke", default="hello-world"),
    ),
    trust_level="local",
    examples=("printf 'Ada\\nLinus\\n' | ./agent.py --target ../hello_world/agent.py",),
)


if __name__ == "__main__":
    define_agent(AGENT)
