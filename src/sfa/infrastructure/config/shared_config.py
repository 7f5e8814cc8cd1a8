"""
Shared config loader.

Reads the user's shared YAML document (``SFA_CONFIG`` or
``~/.config/single-file-agents/config.yaml``). The document is treated as
a free-form mapping; only the ``defaults`` and ``agents.<name>`` sections
are consulted by the runtime.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml

from sfa.core.domain.errors import ConfigError

logger = structlog.get_logger(__name__)

ENV_CONFIG_PATH = "SFA_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "single-file-agents" / "config.yaml"


def resolve_config_path(environ: Mapping[str, str]) -> Path:
    raw = environ.get(ENV_CONFIG_PATH)
    return Path(raw).expanduser() if raw else DEFAULT_CONFIG_PATH


def load_shared_config(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Load the shared config mapping.

    Returns:
        The parsed mapping, or ``{}`` when the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a YAML mapping.
    """
    path = resolve_config_path(environ)
    if not path.exists():
        logger.debug("shared_config.not_found", path=str(path))
        return {}
    try:
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}", details={"path": str(path)}) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping", details={"path": str(path)})
    return data


def agent_namespace(config: Mapping[str, Any], agent_name: str) -> dict[str, Any]:
    """The ``agents.<name>`` section, or ``{}``."""
    agents = config.get("agents")
    if not isinstance(agents, dict):
        return {}
    section = agents.get(agent_name)
    return section if isinstance(section, dict) else {}


def merge_agent_config(config: Mapping[str, Any], agent_name: str) -> dict[str, Any]:
    """``defaults`` overlaid with the agent's own section (shallow)."""
    defaults = config.get("defaults")
    merged: dict[str, Any] = dict(defaults) if isinstance(defaults, dict) else {}
    merged.update(agent_namespace(config, agent_name))
    return merged
