"""
Environment resolution and filtering.

Resolves an agent's declared variables into a ``(name -> value, is_secret)``
view, masks secrets in user-visible text, and builds the filtered
environment handed to spawned children.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any

from sfa.core.domain.agent_definition import EnvDeclaration
from sfa.core.domain.safety import coordination_env
from sfa.infrastructure.config.shared_config import agent_namespace

SYSTEM_ENV_ALLOWLIST: tuple[str, ...] = ("PATH", "HOME", "USER", "SHELL", "TERM", "LANG", "LC_ALL")
SECRET_MASK = "***"


@dataclass(frozen=True)
class ResolvedEnv:
    """Resolved values plus the names flagged as secret."""

    values: dict[str, str] = field(default_factory=dict)
    secrets: frozenset[str] = field(default_factory=frozenset)

    def is_secret(self, name: str) -> bool:
        return name in self.secrets


def resolve_env(
    declarations: Iterable[EnvDeclaration],
    agent_name: str,
    config: Mapping[str, Any],
    environ: Mapping[str, str],
) -> ResolvedEnv:
    """
    Resolve declared variables.

    Precedence: process environment, then ``agents.<name>.env``, then
    ``defaults.env``, then the declaration's own default.
    """
    agent_env = agent_namespace(config, agent_name).get("env") or {}
    defaults = config.get("defaults") if isinstance(config.get("defaults"), dict) else {}
    global_env = defaults.get("env") or {}

    values: dict[str, str] = {}
    secrets: set[str] = set()
    for decl in declarations:
        if decl.secret:
            secrets.add(decl.name)
        for source in (environ, agent_env, global_env):
            if isinstance(source, Mapping) and source.get(decl.name) is not None:
                values[decl.name] = str(source[decl.name])
                break
        else:
            if decl.default is not None:
                values[decl.name] = decl.default
    return ResolvedEnv(values=values, secrets=frozenset(secrets))


def validate_env(declarations: Iterable[EnvDeclaration], resolved: ResolvedEnv) -> list[EnvDeclaration]:
    """Required declarations without a non-empty value."""
    return [decl for decl in declarations if decl.required and not resolved.values.get(decl.name)]


def format_missing_env_error(agent_name: str, missing: Iterable[EnvDeclaration]) -> str:
    lines = ["Missing required environment variables:"]
    for decl in missing:
        suffix = f" - {decl.description}" if decl.description else ""
        lines.append(f"  {decl.name}{suffix}")
    lines.append("")
    lines.append(f"Set them in your environment or under agents.{agent_name}.env in the shared config.")
    return "\n".join(lines)


def inject_env(resolved: ResolvedEnv, environ: MutableMapping[str, str]) -> None:
    """Fill unset variables only; the live environment keeps precedence."""
    for name, value in resolved.values.items():
        environ.setdefault(name, value)


def mask_secrets(text: str, resolved: ResolvedEnv | None) -> str:
    if resolved is None:
        return text
    masked = text
    for name in resolved.secrets:
        value = resolved.values.get(name)
        if value:
            masked = masked.replace(value, SECRET_MASK)
    return masked


def build_subagent_env(environ: Mapping[str, str]) -> dict[str, str]:
    """
    Filtered environment for a child process.

    Only coordination-namespace variables and the generic system allow-list
    survive. Agent-declared and custom variables (credentials included) are
    never forwarded down a call tree.
    """
    env = coordination_env(environ)
    for key in SYSTEM_ENV_ALLOWLIST:
        value = environ.get(key)
        if value:
            env[key] = value
    return env
