"""
Agent CLI entry point.

``define_agent()`` turns an ``AgentDefinition`` into a typer command with
the standard flags every agent shares. Agent-declared options arrive as
extra arguments and are parsed against the definition. The command then
either runs the agent once or, with ``--mcp``, serves it over stdio.
"""

import asyncio
import json
import os
import sys
from collections.abc import MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import structlog
import typer

from sfa.api.cli.options import parse_agent_options
from sfa.api.cli.output import build_describe, build_epilog, write_diagnostic, write_result
from sfa.api.mcp.framing import LineWriter, open_stdin_reader
from sfa.api.mcp.server import ToolServer
from sfa.application.executor import AgentExecutor
from sfa.application.invoker import SubagentInvoker
from sfa.core.domain.agent_definition import AgentDefinition
from sfa.core.domain.enums import ExitCode, OutputFormat
from sfa.core.domain.errors import ConfigError, LoopDetectedError, UsageError
from sfa.core.domain.safety import SafetyState, init_safety
from sfa.core.interfaces.execution_log import ExecutionLogProtocol
from sfa.core.interfaces.progress import ProgressProtocol
from sfa.infrastructure.config.env_resolver import (
    format_missing_env_error,
    inject_env,
    resolve_env,
    validate_env,
)
from sfa.infrastructure.config.settings import RuntimeSettings
from sfa.infrastructure.config.shared_config import load_shared_config, merge_agent_config
from sfa.infrastructure.logging.execution_log import NullExecutionLog, StructlogExecutionLog
from sfa.infrastructure.logging.progress import StderrProgress
from sfa.infrastructure.logging.setup import configure_logging
from sfa.infrastructure.runtime.signals import get_signal_router

logger = structlog.get_logger(__name__)

CONTEXT_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}


@dataclass(frozen=True)
class CliFlags:
    """Standard flags shared by every agent."""

    version: bool = False
    describe: bool = False
    verbose: bool = False
    quiet: bool = False
    output_format: OutputFormat = OutputFormat.TEXT
    timeout: float | None = None
    context: str | None = None
    context_file: Path | None = None
    no_log: bool = False
    max_depth: int | None = None
    mcp: bool = False


def read_input(context_file: Path | None, context: str | None, stdin: TextIO | None) -> str:
    """
    Resolve the input context.

    Priority: ``--context-file`` > ``--context`` > piped stdin > empty.

    Raises:
        UsageError: If the context file does not exist or is unreadable.
    """
    if context_file is not None:
        if not context_file.is_file():
            raise UsageError(f"Context file not found: {context_file}")
        try:
            return context_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise UsageError(f"Cannot read context file {context_file}: {exc}") from exc
    if context:
        return context
    if stdin is not None and not stdin.isatty():
        return stdin.read()
    return ""


def run_cli(
    definition: AgentDefinition,
    flags: CliFlags,
    extra_args: Sequence[str] = (),
    *,
    environ: MutableMapping[str, str] | None = None,
    stdin: TextIO | None = None,
) -> int:
    """Run one CLI invocation and return the process exit code."""
    environ = os.environ if environ is None else environ
    stdin = sys.stdin if stdin is None else stdin

    if flags.version:
        sys.stdout.write(definition.version + "\n")
        return ExitCode.SUCCESS
    if flags.describe:
        sys.stdout.write(json.dumps(build_describe(definition), indent=2) + "\n")
        return ExitCode.SUCCESS

    try:
        options = parse_agent_options(definition, extra_args)
        settings = RuntimeSettings.from_env(
            environ,
            timeout_seconds=flags.timeout,
            log_level="DEBUG" if flags.verbose else None,
            no_log=True if flags.no_log else None,
        )
        if flags.mcp and not definition.mcp_supported:
            raise UsageError(f"Agent {definition.name} does not support MCP server mode")
        config = load_shared_config(environ)
    except (UsageError, ConfigError) as exc:
        write_diagnostic(exc.message)
        return ExitCode.INVALID_USAGE

    configure_logging(settings.log_level)

    resolved = resolve_env(definition.env, definition.name, config, environ)
    missing = validate_env(definition.env, resolved)
    if missing:
        write_diagnostic(format_missing_env_error(definition.name, missing))
        return ExitCode.INVALID_USAGE
    inject_env(resolved, environ)

    try:
        safety = init_safety(definition.name, environ, flags.max_depth, default_max_depth=settings.max_depth)
    except LoopDetectedError as exc:
        write_diagnostic(exc.message)
        return ExitCode.FAILURE

    progress = StderrProgress(quiet=flags.quiet, resolved_env=resolved)
    execution_log: ExecutionLogProtocol = NullExecutionLog() if settings.no_log else StructlogExecutionLog()
    agent_config = merge_agent_config(config, definition.name)
    logger.debug(
        "cli.started",
        agent=definition.name,
        mode="mcp" if flags.mcp else "single",
        depth=safety.depth,
        session_id=safety.session_id,
    )

    if flags.mcp:
        return int(
            asyncio.run(
                _serve(definition, safety, settings, execution_log, progress, environ, agent_config)
            )
        )

    try:
        input_text = read_input(flags.context_file, flags.context, stdin)
    except UsageError as exc:
        write_diagnostic(exc.message)
        return ExitCode.INVALID_USAGE
    if definition.context_required and not input_text:
        write_diagnostic(
            "This agent requires context input. Provide via stdin, --context, or --context-file.\n"
            f"Run '{definition.name} --help' for usage."
        )
        return ExitCode.INVALID_USAGE

    executor = AgentExecutor(
        definition,
        settings=settings,
        invoker=SubagentInvoker(kill_grace_seconds=settings.kill_grace_seconds),
        execution_log=execution_log,
        progress=progress,
        signal_router=get_signal_router(),
    )
    outcome = asyncio.run(
        executor.run(input_text=input_text, options=options, env=environ, config=agent_config, safety=safety)
    )
    if outcome.exit_code == ExitCode.SUCCESS and outcome.result is not None:
        write_result(outcome.result, flags.output_format)
    elif outcome.error and outcome.exit_code in (ExitCode.FAILURE, ExitCode.TIMEOUT):
        write_diagnostic(outcome.error)
    return int(outcome.exit_code)


async def _serve(
    definition: AgentDefinition,
    safety: SafetyState,
    settings: RuntimeSettings,
    execution_log: ExecutionLogProtocol,
    progress: ProgressProtocol,
    environ: MutableMapping[str, str],
    config: dict[str, Any],
) -> ExitCode:
    server = ToolServer(
        definition,
        safety=safety,
        settings=settings,
        invoker=SubagentInvoker(kill_grace_seconds=settings.kill_grace_seconds),
        execution_log=execution_log,
        progress=progress,
        reader=await open_stdin_reader(),
        writer=LineWriter(),
        env=environ,
        config=config,
        signal_router=get_signal_router(),
    )
    return await server.serve()


def build_app(definition: AgentDefinition) -> typer.Typer:
    """Typer application for one agent."""
    app = typer.Typer(
        name=definition.name,
        help=definition.description,
        add_completion=False,
        rich_markup_mode=None,
    )

    @app.command(context_settings=CONTEXT_SETTINGS, epilog=build_epilog(definition) or None)
    def main(
        ctx: typer.Context,
        version: bool = typer.Option(False, "--version", help="Print the agent version and exit"),
        describe: bool = typer.Option(False, "--describe", help="Print agent metadata as JSON and exit"),
        verbose: bool = typer.Option(False, "--verbose", help="Debug diagnostics on stderr"),
        quiet: bool = typer.Option(False, "--quiet", help="Suppress progress messages"),
        output_format: OutputFormat = typer.Option(
            OutputFormat.TEXT, "--output-format", help="Result format", case_sensitive=False
        ),
        timeout: float | None = typer.Option(
            None, "--timeout", min=0.001, help="Execution timeout in seconds (default: 120)"
        ),
        context: str | None = typer.Option(None, "--context", help="Input context string"),
        context_file: Path | None = typer.Option(None, "--context-file", help="Read input context from a file"),
        no_log: bool = typer.Option(False, "--no-log", help="Do not record this execution"),
        max_depth: int | None = typer.Option(None, "--max-depth", min=1, help="Maximum invocation depth"),
        mcp: bool = typer.Option(False, "--mcp", help="Serve the agent over stdio JSON-RPC"),
    ) -> None:
        flags = CliFlags(
            version=version,
            describe=describe,
            verbose=verbose,
            quiet=quiet,
            output_format=output_format,
            timeout=timeout,
            context=context,
            context_file=context_file,
            no_log=no_log,
            max_depth=max_depth,
            mcp=mcp,
        )
        raise typer.Exit(code=run_cli(definition, flags, list(ctx.args)))

    return app


def define_agent(definition: AgentDefinition, argv: Sequence[str] | None = None) -> None:
    """Run ``definition`` as a command-line program. Exits the process."""
    build_app(definition)(args=list(argv) if argv is not None else None, prog_name=definition.name)
