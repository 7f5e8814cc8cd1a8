"""Configuration adapters: runtime settings, shared config, environment resolution."""

from sfa.infrastructure.config.env_resolver import (
    ResolvedEnv,
    build_subagent_env,
    mask_secrets,
    resolve_env,
    validate_env,
)
from sfa.infrastructure.config.settings import RuntimeSettings
from sfa.infrastructure.config.shared_config import load_shared_config

__all__ = [
    "ResolvedEnv",
    "RuntimeSettings",
    "build_subagent_env",
    "load_shared_config",
    "mask_secrets",
    "resolve_env",
    "validate_env",
]
