# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Custom exceptions raised while loading and resolving environment descriptors."""

from __future__ import annotations

from typing import Final


class DevshellError(RuntimeError):
    """Base class for every error raised by the devshell package."""


class DescriptorValidationError(DevshellError):
    """Raised when a descriptor document fails structural schema validation."""


class DescriptorIntegrityError(DevshellError):
    """Raised when descriptor or catalog metadata violates semantic invariants."""


class ConfigError(DevshellError):
    """Raised when configuration input is invalid."""


class ResolutionError(DevshellError):
    """Failure scoped to a single ``(descriptor, platform)`` resolution."""

    kind: str = "resolution"

    def __init__(self, message: str, *, platform: str) -> None:
        """Create the error bound to ``platform``.

        Args:
            message: Human-readable failure description.
            platform: Platform identifier whose resolution failed.
        """

        super().__init__(message)
        self.platform = platform


class UnresolvedTool(ResolutionError):
    """Raised when a plain tool request is absent for a platform."""

    kind = "unresolved-tool"

    def __init__(self, name: str, *, platform: str) -> None:
        super().__init__(f"tool '{name}' is not available for {platform}", platform=platform)
        self.name = name


class NoMatchingVariant(ResolutionError):
    """Raised when no toolchain variant satisfies a selector."""

    kind = "no-matching-variant"

    def __init__(self, selector: str, *, platform: str) -> None:
        super().__init__(f"no toolchain variant matches {selector} on {platform}", platform=platform)
        self.selector = selector


class AmbiguousSelector(ResolutionError):
    """Raised when several variants tie for a selector and ordering cannot split them."""

    kind = "ambiguous-selector"

    def __init__(self, selector: str, candidates: tuple[str, ...], *, platform: str) -> None:
        joined = ", ".join(candidates)
        super().__init__(
            f"{selector} is ambiguous on {platform}: {joined}",
            platform=platform,
        )
        self.selector = selector
        self.candidates = candidates


class SourceUnavailable(ResolutionError):
    """Raised when the package source times out or fails to answer."""

    kind = "source-unavailable"


class SourceMismatch(ResolutionError):
    """Raised when the source revision differs from the revision a descriptor pins."""

    kind = "source-mismatch"

    def __init__(self, pinned: str, actual: str, *, platform: str) -> None:
        super().__init__(
            f"descriptor pins source revision {pinned} but the package source is at {actual}",
            platform=platform,
        )
        self.pinned = pinned
        self.actual = actual


class PlatformDiscoveryFailed(DevshellError):
    """Raised when the target platforms cannot be determined."""


RESOLUTION_ERROR_KINDS: Final[tuple[str, ...]] = (
    UnresolvedTool.kind,
    NoMatchingVariant.kind,
    AmbiguousSelector.kind,
    SourceUnavailable.kind,
    SourceMismatch.kind,
)

__all__ = [
    "RESOLUTION_ERROR_KINDS",
    "AmbiguousSelector",
    "ConfigError",
    "DescriptorIntegrityError",
    "DescriptorValidationError",
    "DevshellError",
    "NoMatchingVariant",
    "PlatformDiscoveryFailed",
    "ResolutionError",
    "SourceMismatch",
    "SourceUnavailable",
    "UnresolvedTool",
]
