# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared type aliases and constants for environment descriptors."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final, TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | Sequence["JSONValue"] | Mapping[str, "JSONValue"]

PlatformId: TypeAlias = str

DEFAULT_SHELL_NAME: Final[str] = "default"
DEFAULT_STARTUP: Final[str] = ":"
DEFAULT_TOOLCHAIN_NAME: Final[str] = "toolchain"
DEFAULT_TOOLCHAIN_PROFILE: Final[str] = "default"
LATEST_PREFIX: Final[str] = "latest-"

DEFAULT_SYSTEMS: Final[tuple[PlatformId, ...]] = (
    "x86_64-linux",
    "aarch64-linux",
    "x86_64-darwin",
    "aarch64-darwin",
)

__all__ = [
    "DEFAULT_SHELL_NAME",
    "DEFAULT_STARTUP",
    "DEFAULT_SYSTEMS",
    "DEFAULT_TOOLCHAIN_NAME",
    "DEFAULT_TOOLCHAIN_PROFILE",
    "LATEST_PREFIX",
    "JSONPrimitive",
    "JSONValue",
    "PlatformId",
]
