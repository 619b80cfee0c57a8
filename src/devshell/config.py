# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and layered loading for devshell."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "devshell"
CONFIG_FILENAME: Final[str] = "devshell.toml"

ENV_JOBS: Final[str] = "DEVSHELL_JOBS"
ENV_TIMEOUT: Final[str] = "DEVSHELL_TIMEOUT"
ENV_PLATFORMS: Final[str] = "DEVSHELL_PLATFORMS"


class ResolutionConfig(BaseModel):
    """Resolution behaviour: parallelism, timeouts and caller-side retries."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    jobs: int = Field(default=1, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=0.5, ge=0)
    retry_backoff_factor: float = Field(default=2.0, ge=1)
    platforms: list[str] = Field(default_factory=list)

    @field_validator("platforms")
    @classmethod
    def strip_platforms(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]


class OutputConfig(BaseModel):
    """Console presentation preferences."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    emoji: bool = True
    color: bool = True


class Config(BaseModel):
    """Top-level devshell configuration."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def load_config(root: Path, *, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration for the project rooted at ``root``.

    Later sources override earlier ones: built-in defaults,
    ``[tool.devshell]`` in ``pyproject.toml``, ``devshell.toml``, then
    ``DEVSHELL_*`` environment variables.

    Args:
        root: Project directory searched for configuration files.
        env: Environment mapping; defaults to :data:`os.environ`.

    Returns:
        Config: Validated configuration.

    Raises:
        ConfigError: If a file cannot be parsed or a value is invalid.
    """

    merged: dict[str, Any] = Config().to_dict()
    pyproject = _read_toml(root / "pyproject.toml")
    tool_section = pyproject.get(PYPROJECT_TOOL_KEY)
    if isinstance(tool_section, Mapping):
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        if isinstance(section, Mapping):
            merged = _deep_merge(merged, section)
    merged = _deep_merge(merged, _read_toml(root / CONFIG_FILENAME))
    merged = _deep_merge(merged, _env_overrides(os.environ if env is None else env))
    try:
        return Config.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid devshell configuration: {exc}") from exc


def _read_toml(path: Path) -> Mapping[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read configuration at {path}: {exc}") from exc


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    resolution: dict[str, Any] = {}
    if jobs := env.get(ENV_JOBS):
        resolution["jobs"] = jobs
    if timeout := env.get(ENV_TIMEOUT):
        resolution["timeout_seconds"] = timeout
    if platforms := env.get(ENV_PLATFORMS):
        resolution["platforms"] = platforms.split(",")
    return {"resolution": resolution} if resolution else {}


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(existing, value)
        else:
            result[key] = value
    return result


__all__ = ["Config", "OutputConfig", "ResolutionConfig", "load_config"]
