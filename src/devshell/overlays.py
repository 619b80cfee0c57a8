# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Overlay transformations folded over a source package set."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import reduce
from importlib import metadata
from types import MappingProxyType
from typing import Protocol, TypeAlias, cast, runtime_checkable

from .errors import DescriptorIntegrityError
from .package_set import PackageSet, PlatformReferences, ToolVariant, parse_packages, parse_variants
from .types import JSONValue
from .utils import expect_mapping, expect_string

LOGGER = logging.getLogger(__name__)

PLUGIN_GROUP = "devshell.overlays"


@runtime_checkable
class Overlay(Protocol):
    """Pure transformation returning an augmented package set."""

    name: str

    def apply(self, packages: PackageSet) -> PackageSet:
        """Return a new package set derived from ``packages``.

        Args:
            packages: Package set produced by the base source or the previous overlay.

        Returns:
            PackageSet: Augmented package set; ``packages`` itself is never mutated.
        """


@dataclass(frozen=True, slots=True)
class PackageOverlay:
    """Overlay that adds or replaces packages and toolchain variants."""

    name: str
    packages: Mapping[str, PlatformReferences] = field(default_factory=lambda: MappingProxyType({}))
    variants: tuple[ToolVariant, ...] = ()

    def apply(self, packages: PackageSet) -> PackageSet:
        result = packages.with_packages(self.packages) if self.packages else packages
        return result.with_variants(self.variants) if self.variants else result

    @staticmethod
    def from_mapping(data: Mapping[str, JSONValue], *, context: str) -> PackageOverlay:
        """Create an overlay from an inline ``{name, packages, variants}`` object.

        Raises:
            DescriptorIntegrityError: If the overlay payload is malformed.
        """

        name = expect_string(data.get("name"), key="name", context=context)
        overlay_context = f"{context}[{name}]"
        packages_data = data.get("packages")
        packages = (
            parse_packages(expect_mapping(packages_data, key="packages", context=overlay_context), context=overlay_context)
            if packages_data is not None
            else {}
        )
        return PackageOverlay(
            name=name,
            packages=MappingProxyType(packages),
            variants=parse_variants(data.get("variants"), context=overlay_context),
        )


OverlayFunction: TypeAlias = Callable[[PackageSet], PackageSet]


@dataclass(frozen=True, slots=True)
class FunctionOverlay:
    """Overlay backed by a plain callable, used for programmatic and plugin overlays."""

    name: str
    function: OverlayFunction

    def apply(self, packages: PackageSet) -> PackageSet:
        result = self.function(packages)
        if not isinstance(result, PackageSet):
            raise DescriptorIntegrityError(f"overlay '{self.name}' returned {type(result).__name__}, not a PackageSet")
        return result


def apply_overlays(base: PackageSet, overlays: Sequence[Overlay]) -> PackageSet:
    """Fold ``overlays`` over ``base`` in declared order.

    Each overlay receives the set produced by the previous one, so a later
    overlay shadows any name an earlier overlay defined.
    """

    return reduce(_apply_one, overlays, base)


def _apply_one(packages: PackageSet, overlay: Overlay) -> PackageSet:
    LOGGER.debug("applying overlay %s", overlay.name)
    return overlay.apply(packages)


class OverlayRegistry:
    """Named overlays available to descriptors that reference overlays by name."""

    def __init__(self, overlays: Iterable[Overlay] = ()) -> None:
        self._overlays: dict[str, Overlay] = {}
        for overlay in overlays:
            self.register(overlay)

    def register(self, overlay: Overlay) -> None:
        """Register ``overlay`` under its name.

        Raises:
            DescriptorIntegrityError: If another overlay already uses the name.
        """

        if overlay.name in self._overlays:
            raise DescriptorIntegrityError(f"Duplicate overlay '{overlay.name}' registered")
        self._overlays[overlay.name] = overlay

    def get(self, name: str) -> Overlay:
        """Return the overlay registered as ``name``.

        Raises:
            DescriptorIntegrityError: If ``name`` is unknown.
        """

        try:
            return self._overlays[name]
        except KeyError as exc:
            known = ", ".join(sorted(self._overlays)) or "none"
            raise DescriptorIntegrityError(f"Unknown overlay '{name}' (known: {known})") from exc

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._overlays))

    def __contains__(self, name: object) -> bool:
        return name in self._overlays

    @classmethod
    def from_mapping(cls, data: Mapping[str, JSONValue], *, context: str) -> OverlayRegistry:
        """Build a registry from a catalog ``overlays`` table keyed by overlay name."""

        overlays: list[Overlay] = []
        for name, payload in data.items():
            mapping = dict(expect_mapping(payload, key=name, context=context))
            mapping.setdefault("name", name)
            overlays.append(PackageOverlay.from_mapping(mapping, context=f"{context}.overlays"))
        return cls(overlays)

    def merged(self, other: OverlayRegistry) -> OverlayRegistry:
        """Return a registry holding the overlays of both registries."""

        return OverlayRegistry([*self._overlays.values(), *other._overlays.values()])


def discover_overlays() -> tuple[Overlay, ...]:
    """Return overlays registered under the ``devshell.overlays`` entry point.

    Each entry point must load to an :class:`Overlay` instance or a callable
    returning one. Entries that fail to import are skipped with a warning.

    Raises:
        DescriptorIntegrityError: If an entry is not an overlay, its factory
            fails, or the factory returns something other than an overlay.
    """

    selected = metadata.entry_points().select(group=PLUGIN_GROUP)
    overlays: list[Overlay] = []
    for entry in selected:
        try:
            loaded = entry.load()
        except (AttributeError, ImportError, ValueError) as exc:
            LOGGER.warning("skipping overlay plugin %s: %s", entry.name, exc)
            continue
        candidate = loaded if isinstance(loaded, Overlay) else _call_factory(entry.name, loaded)
        if not isinstance(candidate, Overlay):
            raise DescriptorIntegrityError(f"overlay plugin '{entry.name}' did not produce an overlay")
        overlays.append(cast(Overlay, candidate))
    return tuple(overlays)


def _call_factory(name: str, factory: object) -> object:
    if not callable(factory):
        raise DescriptorIntegrityError(f"overlay plugin '{name}' is neither an overlay nor a factory")
    try:
        return factory()
    except Exception as exc:
        raise DescriptorIntegrityError(f"overlay plugin '{name}' factory failed: {exc}") from exc


__all__ = [
    "PLUGIN_GROUP",
    "FunctionOverlay",
    "Overlay",
    "OverlayFunction",
    "OverlayRegistry",
    "PackageOverlay",
    "apply_overlays",
    "discover_overlays",
]
