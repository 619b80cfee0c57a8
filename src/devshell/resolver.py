# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve environment descriptors into per-platform environment records."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from .errors import ResolutionError, SourceMismatch, SourceUnavailable, UnresolvedTool
from .model_descriptor import EnvironmentDescriptor
from .model_record import EnvironmentRecord, PlatformOutcome, ResolutionReport
from .overlays import apply_overlays
from .package_set import ToolReference
from .platforms import PlatformEnumerator
from .selection import VersionOrdering, default_version_key, select_variant
from .source import PackageSource, StaticPackageSource
from .types import PlatformId

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DescriptorResolver:
    """Resolve a descriptor for one platform against a package source.

    Every call snapshots the source once, folds the overlays over that
    snapshot and answers all lookups from the result; no state survives
    between calls.
    """

    ordering: VersionOrdering = field(default=default_version_key)

    def resolve(
        self,
        descriptor: EnvironmentDescriptor,
        platform: PlatformId,
        source: PackageSource,
    ) -> EnvironmentRecord:
        """Return the environment record for ``descriptor`` on ``platform``.

        Args:
            descriptor: Declarative environment description.
            platform: Target platform identifier.
            source: Package source queried through a single snapshot.

        Returns:
            EnvironmentRecord: Plain tools followed by toolchain selections,
            in declaration order, plus the descriptor's startup action.

        Raises:
            UnresolvedTool: If a plain tool is absent for ``platform``.
            NoMatchingVariant: If a toolchain selector has no candidate.
            AmbiguousSelector: If a selector's newest candidates tie.
            SourceUnavailable: If the source snapshot cannot be obtained.
            SourceMismatch: If the source revision differs from the pinned one.
        """

        try:
            snapshot = source.snapshot()
        except SourceUnavailable as exc:
            raise SourceUnavailable(str(exc), platform=platform) from exc
        except OSError as exc:
            raise SourceUnavailable(f"package source snapshot failed: {exc}", platform=platform) from exc
        pinned = descriptor.source.revision
        if pinned and snapshot.revision and pinned != snapshot.revision:
            raise SourceMismatch(pinned, snapshot.revision, platform=platform)
        view = StaticPackageSource(apply_overlays(snapshot, descriptor.overlays))

        references: list[ToolReference] = []
        for name in descriptor.tools:
            reference = view.query(name, platform)
            if reference is None:
                raise UnresolvedTool(name, platform=platform)
            references.append(reference)
        for selector in descriptor.toolchains:
            variant = select_variant(
                selector,
                view.query_variants(selector, platform),
                platform=platform,
                ordering=self.ordering,
            )
            references.append(variant.to_reference())

        return EnvironmentRecord(
            platform=platform,
            shell=descriptor.name,
            tools=_unique(references),
            startup=descriptor.startup,
            source_revision=snapshot.revision or descriptor.source.revision,
        )

    def outcome(
        self,
        descriptor: EnvironmentDescriptor,
        platform: PlatformId,
        source: PackageSource,
    ) -> PlatformOutcome:
        """Resolve ``platform`` and capture a resolution failure instead of raising."""

        try:
            record = self.resolve(descriptor, platform, source)
        except ResolutionError as exc:
            LOGGER.debug("resolution failed for %s: %s", platform, exc)
            return PlatformOutcome(platform=platform, error=exc)
        return PlatformOutcome(platform=platform, record=record)


def resolve(
    descriptor: EnvironmentDescriptor,
    platform: PlatformId,
    source: PackageSource,
) -> EnvironmentRecord:
    """Resolve ``descriptor`` for ``platform`` with the default version ordering."""

    return DescriptorResolver().resolve(descriptor, platform, source)


def resolve_all(
    descriptor: EnvironmentDescriptor,
    enumerator: PlatformEnumerator,
    source: PackageSource,
    *,
    jobs: int = 1,
    resolver: DescriptorResolver | None = None,
) -> ResolutionReport:
    """Resolve ``descriptor`` independently for every enumerated platform.

    Args:
        descriptor: Declarative environment description.
        enumerator: Supplies the target platforms.
        source: Package source shared read-only by every resolution.
        jobs: Number of worker threads; ``1`` resolves sequentially.
        resolver: Optional resolver carrying a custom version ordering.

    Returns:
        ResolutionReport: Outcome per platform; failures never abort other platforms.

    Raises:
        PlatformDiscoveryFailed: If the enumerator cannot produce platforms.
    """

    active = resolver or DescriptorResolver()
    platforms = sorted(enumerator.enumerate())
    LOGGER.debug("resolving %s for %d platform(s)", descriptor.name, len(platforms))
    outcomes: dict[PlatformId, PlatformOutcome] = {}
    if jobs <= 1 or len(platforms) <= 1:
        for platform in platforms:
            outcomes[platform] = active.outcome(descriptor, platform, source)
        return ResolutionReport(outcomes)

    with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="devshell-resolve") as executor:
        future_map = {
            executor.submit(active.outcome, descriptor, platform, source): platform for platform in platforms
        }
        for future in as_completed(future_map):
            outcomes[future_map[future]] = future.result()
    return ResolutionReport(outcomes)


class EnvironmentOutputs(Mapping[PlatformId, EnvironmentRecord]):
    """Read-only mapping computing a platform's record each time it is accessed.

    Nothing is precomputed or cached, so every lookup reflects the source
    contents at access time.
    """

    def __init__(
        self,
        descriptor: EnvironmentDescriptor,
        platforms: frozenset[PlatformId],
        source: PackageSource,
        *,
        resolver: DescriptorResolver | None = None,
    ) -> None:
        self._descriptor = descriptor
        self._platforms = platforms
        self._source = source
        self._resolver = resolver or DescriptorResolver()

    def __getitem__(self, platform: PlatformId) -> EnvironmentRecord:
        if platform not in self._platforms:
            raise KeyError(platform)
        return self._resolver.resolve(self._descriptor, platform, self._source)

    def __iter__(self) -> Iterator[PlatformId]:
        return iter(sorted(self._platforms))

    def __len__(self) -> int:
        return len(self._platforms)


def _unique(references: list[ToolReference]) -> tuple[ToolReference, ...]:
    seen: set[str] = set()
    ordered: list[ToolReference] = []
    for reference in references:
        if reference.reference in seen:
            continue
        seen.add(reference.reference)
        ordered.append(reference)
    return tuple(ordered)


__all__ = [
    "DescriptorResolver",
    "EnvironmentOutputs",
    "resolve",
    "resolve_all",
]
