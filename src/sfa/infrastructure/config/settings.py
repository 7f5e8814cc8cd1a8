"""
Runtime Settings

Pydantic model holding the timing constants and defaults every agent
shares. Values come from built-in defaults, optionally overridden by
``SFA_DEFAULTS_*`` environment variables and then by explicit CLI flags.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sfa.core.domain.errors import ConfigError
from sfa.core.domain.safety import DEFAULT_MAX_DEPTH

ENV_DEFAULT_TIMEOUT = "SFA_DEFAULTS_TIMEOUT"
ENV_DEFAULT_MAX_DEPTH = "SFA_DEFAULTS_MAXDEPTH"
ENV_DEFAULT_LOG_LEVEL = "SFA_DEFAULTS_LOGLEVEL"
ENV_LOG_LEVEL = "SFA_LOG_LEVEL"
ENV_NO_LOG = "SFA_NO_LOG"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RuntimeSettings(BaseModel):
    """Timeouts, grace windows and logging defaults."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout_seconds: float = Field(120.0, gt=0, description="Default execution / per-call timeout")
    max_depth: int = Field(DEFAULT_MAX_DEPTH, ge=1, description="Depth limit without --max-depth or SFA_MAX_DEPTH")
    kill_grace_seconds: float = Field(5.0, ge=0, description="SIGTERM to SIGKILL escalation window")
    drain_grace_seconds: float = Field(5.0, ge=0, description="Tool server in-flight drain window")
    interrupt_grace_seconds: float = Field(0.1, ge=0, description="Cleanup window after SIGINT")
    terminate_grace_seconds: float = Field(5.0, ge=0, description="Cleanup window after SIGTERM")
    log_level: str = Field("WARNING", description="Diagnostics log level")
    no_log: bool = Field(False, description="Suppress execution records")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str], **overrides: Any) -> "RuntimeSettings":
        """
        Build settings from ``SFA_DEFAULTS_*`` variables plus overrides.

        Overrides whose value is ``None`` are ignored.

        Raises:
            ConfigError: If a value does not validate.
        """
        data: dict[str, Any] = {}
        if environ.get(ENV_DEFAULT_TIMEOUT):
            data["timeout_seconds"] = environ[ENV_DEFAULT_TIMEOUT]
        if environ.get(ENV_DEFAULT_MAX_DEPTH):
            data["max_depth"] = environ[ENV_DEFAULT_MAX_DEPTH]
        level = environ.get(ENV_LOG_LEVEL) or environ.get(ENV_DEFAULT_LOG_LEVEL)
        if level:
            data["log_level"] = level
        if environ.get(ENV_NO_LOG) == "1":
            data["no_log"] = True
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid runtime settings: {exc.errors()[0]['msg']}",
                details={"errors": exc.errors(include_url=False)},
            ) from exc
