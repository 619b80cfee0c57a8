# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Deterministic toolchain variant selection."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from datetime import date
from typing import Final, TypeAlias

from packaging.version import InvalidVersion, Version

from .errors import AmbiguousSelector, NoMatchingVariant
from .model_descriptor import ToolchainSelector
from .package_set import ToolVariant
from .types import PlatformId

LOGGER = logging.getLogger(__name__)

DATE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# (rank, value) pairs: unparseable < semantic version < date.
OrderingKey: TypeAlias = tuple[int, object]
VersionOrdering: TypeAlias = Callable[[str], OrderingKey]

_RANK_TEXT: Final[int] = 0
_RANK_VERSION: Final[int] = 1
_RANK_DATE: Final[int] = 2


def default_version_key(raw: str) -> OrderingKey:
    """Return the ordering key used to pick the newest variant.

    ISO ``YYYY-MM-DD`` strings compare as calendar dates, PEP 440 compatible
    strings compare as :class:`packaging.version.Version`, anything else
    compares lexically below both.

    Args:
        raw: Variant version string.

    Returns:
        OrderingKey: Tuple of rank and comparable value.
    """

    match = DATE_PATTERN.match(raw)
    if match:
        try:
            return (_RANK_DATE, date(int(match.group(1)), int(match.group(2)), int(match.group(3))))
        except ValueError:
            return (_RANK_TEXT, raw)
    try:
        return (_RANK_VERSION, Version(raw))
    except InvalidVersion:
        return (_RANK_TEXT, raw)


def matches(selector: ToolchainSelector, variant: ToolVariant, platform: PlatformId) -> bool:
    """Return ``True`` when ``variant`` satisfies ``selector`` on ``platform``."""

    if variant.name != selector.name or variant.channel != selector.channel_name:
        return False
    if not variant.supports(platform):
        return False
    if not selector.extensions <= variant.extensions:
        return False
    if variant.profiles and selector.profile not in variant.profiles:
        return False
    return selector.version is None or variant.version == selector.version


def candidates_for(
    selector: ToolchainSelector,
    variants: Iterable[ToolVariant],
    platform: PlatformId,
) -> frozenset[ToolVariant]:
    """Return the variants that satisfy ``selector`` on ``platform``."""

    return frozenset(variant for variant in variants if matches(selector, variant, platform))


def select_variant(
    selector: ToolchainSelector,
    candidates: Iterable[ToolVariant],
    *,
    platform: PlatformId,
    ordering: VersionOrdering = default_version_key,
) -> ToolVariant:
    """Pick exactly one variant from ``candidates``.

    Args:
        selector: Selector being evaluated, used for error reporting.
        candidates: Variants already filtered for ``selector`` and ``platform``.
        platform: Platform the selection is performed for.
        ordering: Key function ordering variant versions; highest wins.

    Returns:
        ToolVariant: The single newest variant.

    Raises:
        NoMatchingVariant: If ``candidates`` is empty.
        AmbiguousSelector: If several distinct references share the highest key.
    """

    pool = list(candidates)
    if not pool:
        raise NoMatchingVariant(selector.describe(), platform=platform)
    best_key = max(ordering(variant.version) for variant in pool)
    top = sorted(
        {variant.reference: variant for variant in pool if ordering(variant.version) == best_key}.values(),
        key=lambda variant: variant.reference,
    )
    if len(top) > 1:
        raise AmbiguousSelector(
            selector.describe(),
            tuple(variant.reference for variant in top),
            platform=platform,
        )
    LOGGER.debug("selected %s for %s on %s", top[0].reference, selector.describe(), platform)
    return top[0]


__all__ = [
    "OrderingKey",
    "VersionOrdering",
    "candidates_for",
    "default_version_key",
    "matches",
    "select_variant",
]
