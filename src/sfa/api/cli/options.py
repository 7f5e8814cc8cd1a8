"""Parsing of agent-declared command-line options."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sfa.core.domain.agent_definition import AgentDefinition, AgentOption
from sfa.core.domain.errors import UsageError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def option_defaults(options: Sequence[AgentOption]) -> dict[str, Any]:
    """Declared defaults; booleans without one default to ``False``."""
    values: dict[str, Any] = {}
    for option in options:
        if option.default is not None:
            values[option.name] = option.default
        elif option.type == "boolean":
            values[option.name] = False
    return values


def convert_value(option: AgentOption, raw: str) -> str | float | bool:
    if option.type == "number":
        try:
            number = float(raw)
        except ValueError as exc:
            raise UsageError(f"Option --{option.name} expects a number, got {raw!r}") from exc
        return int(number) if number.is_integer() and "." not in raw else number
    if option.type == "boolean":
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise UsageError(f"Option --{option.name} expects true or false, got {raw!r}")
    return raw


def parse_agent_options(definition: AgentDefinition, args: Sequence[str]) -> dict[str, Any]:
    """
    Parse the arguments left over after the standard flags.

    Supports ``--name value``, ``--name=value``, ``-a value`` and bare
    ``--flag`` for booleans. Anything undeclared is a usage error, as is a
    required option that was never given.

    Raises:
        UsageError: Unknown option, missing value, bad value or missing
            required option.
    """
    by_name = {option.name: option for option in definition.options}
    by_alias = {option.alias: option for option in definition.options if option.alias}
    values = option_defaults(definition.options)
    given: set[str] = set()

    index = 0
    while index < len(args):
        arg = args[index]
        inline: str | None = None
        if arg.startswith("--"):
            name, sep, value = arg[2:].partition("=")
            option = by_name.get(name)
            inline = value if sep else None
        elif arg.startswith("-") and len(arg) == 2:
            option = by_alias.get(arg[1])
        else:
            raise UsageError(f"Unexpected argument: {arg}\nRun '{definition.name} --help' for usage.")

        if option is None:
            raise UsageError(f"Unknown option: {arg}\nRun '{definition.name} --help' for usage.")

        if option.type == "boolean" and inline is None:
            values[option.name] = True
        else:
            if inline is None:
                index += 1
                if index >= len(args):
                    raise UsageError(f"Option {arg} requires a value")
                inline = args[index]
            values[option.name] = convert_value(option, inline)
        given.add(option.name)
        index += 1

    for option in definition.options:
        if option.required and option.name not in given and option.default is None:
            raise UsageError(
                f"Missing required option: --{option.name}\nRun '{definition.name} --help' for usage."
            )
    return values
