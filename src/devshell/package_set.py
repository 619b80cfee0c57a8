# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Immutable package sets exposed by package sources and transformed by overlays."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final

from pydantic import BaseModel, ConfigDict

from .errors import DescriptorIntegrityError
from .types import DEFAULT_TOOLCHAIN_NAME, JSONValue, PlatformId
from .utils import expect_mapping, expect_string, optional_string, string_array

ANY_PLATFORM: Final[str] = "*"


class ToolReference(BaseModel):
    """Concrete installable reference produced by a package source."""

    model_config = ConfigDict(frozen=True)

    name: str
    reference: str
    version: str | None = None

    @classmethod
    def from_json(cls, name: str, value: JSONValue, *, context: str) -> ToolReference:
        """Build a reference from a plain string or a ``{reference, version}`` object.

        Args:
            name: Package name the reference belongs to.
            value: Raw JSON payload describing the reference.
            context: Human-readable context used in error messages.

        Returns:
            ToolReference: Frozen reference instance.

        Raises:
            DescriptorIntegrityError: If ``value`` has an unsupported shape.
        """

        if isinstance(value, str):
            return cls(name=name, reference=expect_string(value, key=name, context=context))
        mapping = expect_mapping(value, key=name, context=context)
        return cls(
            name=name,
            reference=expect_string(mapping.get("reference"), key="reference", context=f"{context}.{name}"),
            version=optional_string(mapping.get("version"), key="version", context=f"{context}.{name}"),
        )


@dataclass(frozen=True, slots=True)
class ToolVariant:
    """Toolchain candidate that a selector may resolve to."""

    name: str
    channel: str
    version: str
    reference: str
    extensions: frozenset[str] = frozenset()
    profiles: frozenset[str] = frozenset()
    platforms: frozenset[PlatformId] = frozenset()

    def supports(self, platform: PlatformId) -> bool:
        """Return ``True`` when the variant is published for ``platform``."""

        return not self.platforms or platform in self.platforms

    def to_reference(self) -> ToolReference:
        """Return the installable reference for this variant."""

        return ToolReference(name=self.name, reference=self.reference, version=self.version)

    @staticmethod
    def from_mapping(data: Mapping[str, JSONValue], *, context: str) -> ToolVariant:
        """Create a variant from catalog JSON data.

        Args:
            data: Mapping describing the variant.
            context: Human-readable context used in error messages.

        Returns:
            ToolVariant: Frozen variant metadata.

        Raises:
            DescriptorIntegrityError: If required fields are missing or invalid.
        """

        name = optional_string(data.get("name"), key="name", context=context) or DEFAULT_TOOLCHAIN_NAME
        channel = expect_string(data.get("channel"), key="channel", context=context)
        version = expect_string(data.get("version"), key="version", context=context)
        reference = optional_string(data.get("reference"), key="reference", context=context)
        return ToolVariant(
            name=name,
            channel=channel,
            version=version,
            reference=reference or f"{name}-{channel}-{version}",
            extensions=frozenset(string_array(data.get("extensions"), key="extensions", context=context)),
            profiles=frozenset(string_array(data.get("profiles"), key="profiles", context=context)),
            platforms=frozenset(string_array(data.get("platforms"), key="platforms", context=context)),
        )


PlatformReferences = Mapping[str, ToolReference]


@dataclass(frozen=True, slots=True)
class PackageSet:
    """Read-only view of the packages and toolchain variants of one source state.

    Packages map a name to per-platform references; the ``"*"`` key marks a
    reference available on every platform. Every transformation returns a
    new set, leaving the receiver untouched.
    """

    revision: str | None = None
    _packages: Mapping[str, PlatformReferences] = field(default_factory=lambda: MappingProxyType({}))
    _variants: tuple[ToolVariant, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        """Return the sorted package names contained in the set."""

        return tuple(sorted(self._packages))

    @property
    def variants(self) -> tuple[ToolVariant, ...]:
        """Return every toolchain variant contained in the set."""

        return self._variants

    def lookup(self, name: str, platform: PlatformId) -> ToolReference | None:
        """Return the reference for ``name`` on ``platform`` if one exists."""

        entry = self._packages.get(name)
        if entry is None:
            return None
        return entry.get(platform) or entry.get(ANY_PLATFORM)

    def variants_for(self, platform: PlatformId) -> tuple[ToolVariant, ...]:
        """Return the variants published for ``platform``."""

        return tuple(variant for variant in self._variants if variant.supports(platform))

    def with_packages(self, packages: Mapping[str, PlatformReferences]) -> PackageSet:
        """Return a new set where ``packages`` add to or replace existing entries.

        A table carrying a ``"*"`` entry replaces the whole package. Any other
        table only replaces the platforms it names, so pinning one platform
        leaves the package available everywhere else.
        """

        merged: dict[str, PlatformReferences] = dict(self._packages)
        for name, references in packages.items():
            if ANY_PLATFORM in references:
                merged[name] = MappingProxyType(dict(references))
            else:
                merged[name] = MappingProxyType({**self._packages.get(name, {}), **references})
        return PackageSet(revision=self.revision, _packages=MappingProxyType(merged), _variants=self._variants)

    def with_variants(self, variants: Iterable[ToolVariant]) -> PackageSet:
        """Return a new set with ``variants`` appended, replacing identical references."""

        added = tuple(variants)
        replaced = {variant.reference for variant in added}
        kept = tuple(variant for variant in self._variants if variant.reference not in replaced)
        return PackageSet(revision=self.revision, _packages=self._packages, _variants=kept + added)

    @classmethod
    def from_mapping(cls, data: Mapping[str, JSONValue], *, context: str) -> PackageSet:
        """Materialise a package set from a catalog document.

        Args:
            data: Mapping with optional ``revision``, ``packages`` and ``variants`` keys.
            context: Human-readable context used in error messages.

        Returns:
            PackageSet: Frozen package set.
        """

        revision = optional_string(data.get("revision"), key="revision", context=context)
        packages_data = data.get("packages")
        packages = (
            parse_packages(expect_mapping(packages_data, key="packages", context=context), context=context)
            if packages_data is not None
            else {}
        )
        return cls(revision=revision).with_packages(packages).with_variants(
            parse_variants(data.get("variants"), context=context),
        )


def parse_packages(data: Mapping[str, JSONValue], *, context: str) -> dict[str, PlatformReferences]:
    """Parse a ``packages`` table into per-platform references.

    A string value or an object carrying ``reference`` applies to every
    platform; any other object is keyed by platform identifier.

    Raises:
        DescriptorIntegrityError: If an entry has an unsupported shape.
    """

    packages: dict[str, PlatformReferences] = {}
    for name, value in data.items():
        entry_context = f"{context}.packages"
        if isinstance(value, str) or (isinstance(value, Mapping) and "reference" in value):
            packages[name] = {ANY_PLATFORM: ToolReference.from_json(name, value, context=entry_context)}
            continue
        if not isinstance(value, Mapping) or not value:
            raise DescriptorIntegrityError(f"{entry_context}: package '{name}' must be a reference or platform table")
        packages[name] = {
            str(platform): ToolReference.from_json(name, item, context=f"{entry_context}.{name}")
            for platform, item in value.items()
        }
    return packages


def parse_variants(value: JSONValue | None, *, context: str) -> tuple[ToolVariant, ...]:
    """Parse a ``variants`` array into toolchain variants."""

    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise DescriptorIntegrityError(f"{context}: expected 'variants' to be an array")
    return tuple(
        ToolVariant.from_mapping(
            expect_mapping(item, key=f"variants[{index}]", context=context),
            context=f"{context}.variants[{index}]",
        )
        for index, item in enumerate(value)
    )


__all__ = [
    "ANY_PLATFORM",
    "PackageSet",
    "PlatformReferences",
    "ToolReference",
    "ToolVariant",
    "parse_packages",
    "parse_variants",
]
