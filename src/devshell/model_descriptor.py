# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Declarative environment descriptor models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from .errors import DescriptorIntegrityError
from .overlays import Overlay, OverlayRegistry, PackageOverlay
from .types import (
    DEFAULT_SHELL_NAME,
    DEFAULT_STARTUP,
    DEFAULT_TOOLCHAIN_NAME,
    DEFAULT_TOOLCHAIN_PROFILE,
    LATEST_PREFIX,
    JSONValue,
)
from .utils import expect_string, mapping_array, optional_string, string_array

_REVISION_SEPARATOR: Final[str] = "@"
_SCHEME_SEPARATOR: Final[str] = ":"


@dataclass(frozen=True, slots=True)
class Source:
    """Named, optionally pinned reference to an external package repository."""

    identifier: str
    location: str
    revision: str | None = None

    def __str__(self) -> str:
        return f"{self.identifier}@{self.revision}" if self.revision else self.identifier

    @staticmethod
    def parse(value: str, *, context: str = "source") -> Source:
        """Parse ``name@rev`` or ``scheme:owner/repo/ref`` source shorthands.

        Args:
            value: Source string declared in the descriptor.
            context: Human-readable context used in error messages.

        Returns:
            Source: Parsed source reference.

        Raises:
            DescriptorIntegrityError: If ``value`` is empty or malformed.
        """

        text = expect_string(value, key="source", context=context).strip()
        if _REVISION_SEPARATOR in text and _SCHEME_SEPARATOR not in text:
            identifier, _, revision = text.partition(_REVISION_SEPARATOR)
            if not identifier or not revision:
                raise DescriptorIntegrityError(f"{context}: malformed source '{text}'")
            return Source(identifier=identifier, location=identifier, revision=revision)
        if _SCHEME_SEPARATOR in text:
            _scheme, _, path = text.partition(_SCHEME_SEPARATOR)
            segments = [segment for segment in path.split("/") if segment]
            if not segments:
                raise DescriptorIntegrityError(f"{context}: malformed source '{text}'")
            identifier = segments[1] if len(segments) > 1 else segments[0]
            revision = segments[2] if len(segments) > 2 else None
            return Source(identifier=identifier, location=text, revision=revision)
        return Source(identifier=text, location=text)

    @staticmethod
    def from_json(value: JSONValue, *, context: str = "source") -> Source:
        """Create a source from a shorthand string or an ``{id, url, rev}`` object."""

        if isinstance(value, str):
            return Source.parse(value, context=context)
        if not isinstance(value, Mapping):
            raise DescriptorIntegrityError(f"{context}: expected 'source' to be a string or object")
        identifier = expect_string(value.get("id"), key="id", context=context)
        return Source(
            identifier=identifier,
            location=optional_string(value.get("url"), key="url", context=context) or identifier,
            revision=optional_string(value.get("rev"), key="rev", context=context),
        )


@dataclass(frozen=True, slots=True)
class ToolchainSelector:
    """Parameterised request resolving to exactly one toolchain variant.

    ``channel`` accepts either a bare channel (``nightly``) or a
    ``latest-`` prefixed form (``latest-nightly``); both select the newest
    matching variant unless ``version`` pins one explicitly.
    """

    channel: str
    extensions: frozenset[str] = frozenset()
    name: str = DEFAULT_TOOLCHAIN_NAME
    profile: str = DEFAULT_TOOLCHAIN_PROFILE
    version: str | None = None

    @property
    def channel_name(self) -> str:
        """Return the channel without any ``latest-`` prefix."""

        return self.channel.removeprefix(LATEST_PREFIX)

    def describe(self) -> str:
        extensions = ",".join(sorted(self.extensions))
        pinned = f"={self.version}" if self.version else ""
        return f"{self.name}[{self.channel}{pinned}; profile={self.profile}; extensions={{{extensions}}}]"

    @staticmethod
    def from_mapping(data: Mapping[str, JSONValue], *, context: str) -> ToolchainSelector:
        """Create a selector from descriptor JSON data.

        Raises:
            DescriptorIntegrityError: If ``channel`` is missing or fields are mistyped.
        """

        channel = expect_string(data.get("channel"), key="channel", context=context)
        if channel == LATEST_PREFIX.rstrip("-") or not channel.removeprefix(LATEST_PREFIX):
            raise DescriptorIntegrityError(f"{context}: channel '{channel}' does not name a channel")
        return ToolchainSelector(
            channel=channel,
            extensions=frozenset(string_array(data.get("extensions"), key="extensions", context=context)),
            name=optional_string(data.get("name"), key="name", context=context) or DEFAULT_TOOLCHAIN_NAME,
            profile=optional_string(data.get("profile"), key="profile", context=context)
            or DEFAULT_TOOLCHAIN_PROFILE,
            version=optional_string(data.get("version"), key="version", context=context),
        )


@dataclass(frozen=True, slots=True)
class EnvironmentDescriptor:
    """Top-level declaration resolved into one environment record per platform."""

    source: Source
    tools: tuple[str, ...] = ()
    toolchains: tuple[ToolchainSelector, ...] = ()
    overlays: tuple[Overlay, ...] = ()
    startup: str = DEFAULT_STARTUP
    name: str = DEFAULT_SHELL_NAME

    @staticmethod
    def from_mapping(
        data: Mapping[str, JSONValue],
        *,
        context: str = "<descriptor>",
        registry: OverlayRegistry | None = None,
    ) -> EnvironmentDescriptor:
        """Materialise a descriptor from a validated document mapping.

        Args:
            data: Descriptor document mapping.
            context: Human-readable context used in error messages.
            registry: Registry used to resolve overlays referenced by name.

        Returns:
            EnvironmentDescriptor: Frozen descriptor instance.

        Raises:
            DescriptorIntegrityError: If a field is missing, mistyped or references
                an unknown overlay.
        """

        if "source" not in data:
            raise DescriptorIntegrityError(f"{context}: 'source' is required")
        startup = data.get("startup", DEFAULT_STARTUP)
        if not isinstance(startup, str):
            raise DescriptorIntegrityError(f"{context}: expected 'startup' to be a string")
        return EnvironmentDescriptor(
            source=Source.from_json(data["source"], context=f"{context}.source"),
            tools=string_array(data.get("tools"), key="tools", context=context),
            toolchains=tuple(
                ToolchainSelector.from_mapping(item, context=f"{context}.toolchain[{index}]")
                for index, item in enumerate(mapping_array(data.get("toolchain"), key="toolchain", context=context))
            ),
            overlays=_parse_overlays(data.get("overlays"), registry=registry, context=context),
            startup=startup,
            name=optional_string(data.get("name"), key="name", context=context) or DEFAULT_SHELL_NAME,
        )


def _parse_overlays(
    value: JSONValue | None,
    *,
    registry: OverlayRegistry | None,
    context: str,
) -> tuple[Overlay, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise DescriptorIntegrityError(f"{context}: expected 'overlays' to be an array")
    overlays: list[Overlay] = []
    for index, item in enumerate(value):
        item_context = f"{context}.overlays[{index}]"
        if isinstance(item, str):
            if registry is None:
                raise DescriptorIntegrityError(f"{item_context}: overlay '{item}' referenced without a registry")
            overlays.append(registry.get(item))
        elif isinstance(item, Mapping):
            overlays.append(PackageOverlay.from_mapping(item, context=item_context))
        else:
            raise DescriptorIntegrityError(f"{item_context}: expected an overlay name or object")
    return tuple(overlays)


__all__ = ["EnvironmentDescriptor", "Source", "ToolchainSelector"]
