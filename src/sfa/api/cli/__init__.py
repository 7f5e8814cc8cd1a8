"""Command-line surface for agents."""

from sfa.api.cli.runner import CliFlags, build_app, define_agent, run_cli

__all__ = ["CliFlags", "build_app", "define_agent", "run_cli"]
