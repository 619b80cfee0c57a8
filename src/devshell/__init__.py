# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve declarative development environments into per-platform tool sets."""

from __future__ import annotations

from typing import Final

from .errors import (
    AmbiguousSelector,
    DescriptorIntegrityError,
    DescriptorValidationError,
    DevshellError,
    NoMatchingVariant,
    PlatformDiscoveryFailed,
    ResolutionError,
    SourceMismatch,
    SourceUnavailable,
    UnresolvedTool,
)
from .loader import Catalog, DescriptorLoader, load_catalog, parse_catalog
from .model_descriptor import EnvironmentDescriptor, Source, ToolchainSelector
from .model_record import EnvironmentRecord, PlatformOutcome, ResolutionReport
from .overlays import FunctionOverlay, Overlay, OverlayRegistry, PackageOverlay, apply_overlays
from .package_set import PackageSet, ToolReference, ToolVariant
from .platforms import (
    DefaultPlatformEnumerator,
    HostPlatformEnumerator,
    PlatformEnumerator,
    StaticPlatformEnumerator,
)
from .resolver import DescriptorResolver, EnvironmentOutputs, resolve, resolve_all
from .source import PackageSource, RefreshingPackageSource, StaticPackageSource, TimedPackageSource

__all__: Final[tuple[str, ...]] = (
    "AmbiguousSelector",
    "Catalog",
    "DefaultPlatformEnumerator",
    "DescriptorIntegrityError",
    "DescriptorLoader",
    "DescriptorResolver",
    "DescriptorValidationError",
    "DevshellError",
    "EnvironmentDescriptor",
    "EnvironmentOutputs",
    "EnvironmentRecord",
    "FunctionOverlay",
    "HostPlatformEnumerator",
    "NoMatchingVariant",
    "Overlay",
    "OverlayRegistry",
    "PackageOverlay",
    "PackageSet",
    "PackageSource",
    "PlatformDiscoveryFailed",
    "PlatformEnumerator",
    "PlatformOutcome",
    "RefreshingPackageSource",
    "ResolutionError",
    "ResolutionReport",
    "Source",
    "SourceMismatch",
    "SourceUnavailable",
    "StaticPackageSource",
    "StaticPlatformEnumerator",
    "TimedPackageSource",
    "ToolReference",
    "ToolVariant",
    "ToolchainSelector",
    "UnresolvedTool",
    "apply_overlays",
    "load_catalog",
    "parse_catalog",
    "resolve",
    "resolve_all",
)
