# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Package source capability and its in-memory, refreshing and timed implementations."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from threading import Lock
from typing import Protocol, TypeVar, runtime_checkable

from .errors import SourceUnavailable
from .model_descriptor import ToolchainSelector
from .package_set import ANY_PLATFORM, PackageSet, ToolReference, ToolVariant
from .selection import candidates_for
from .types import JSONValue, PlatformId

LOGGER = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


@runtime_checkable
class PackageSource(Protocol):
    """Read-only capability answering package and toolchain queries."""

    def query(self, name: str, platform: PlatformId) -> ToolReference | None:
        """Return the reference for ``name`` on ``platform`` or ``None``."""

    def query_variants(self, selector: ToolchainSelector, platform: PlatformId) -> frozenset[ToolVariant]:
        """Return every variant satisfying ``selector`` on ``platform``."""

    def snapshot(self) -> PackageSet:
        """Return an immutable, point-in-time view of the source contents."""


class StaticPackageSource:
    """Package source answering from one immutable :class:`PackageSet`."""

    def __init__(self, packages: PackageSet) -> None:
        self._packages = packages

    @property
    def revision(self) -> str | None:
        return self._packages.revision

    def query(self, name: str, platform: PlatformId) -> ToolReference | None:
        return self._packages.lookup(name, platform)

    def query_variants(self, selector: ToolchainSelector, platform: PlatformId) -> frozenset[ToolVariant]:
        return candidates_for(selector, self._packages.variants, platform)

    def snapshot(self) -> PackageSet:
        return self._packages

    @classmethod
    def from_mapping(cls, data: Mapping[str, JSONValue], *, context: str) -> StaticPackageSource:
        """Create a source from a catalog document mapping."""

        return cls(PackageSet.from_mapping(data, context=context))


class RefreshingPackageSource:
    """Package source whose contents may be replaced while resolutions run.

    Readers only ever obtain whole :class:`PackageSet` instances, so a
    resolution working from :meth:`snapshot` never observes a half-applied
    refresh.
    """

    def __init__(self, initial: PackageSet) -> None:
        self._lock = Lock()
        self._current = initial

    def refresh(self, packages: PackageSet) -> None:
        """Atomically replace the current contents with ``packages``."""

        with self._lock:
            self._current = packages
        LOGGER.debug("package source refreshed to revision %s", packages.revision)

    def snapshot(self) -> PackageSet:
        with self._lock:
            return self._current

    def query(self, name: str, platform: PlatformId) -> ToolReference | None:
        return self.snapshot().lookup(name, platform)

    def query_variants(self, selector: ToolchainSelector, platform: PlatformId) -> frozenset[ToolVariant]:
        return candidates_for(selector, self.snapshot().variants, platform)


class TimedPackageSource:
    """Wrap a source so each call is bounded by ``timeout`` seconds.

    Timeouts and transport errors surface as :class:`SourceUnavailable`;
    nothing is retried here.
    """

    def __init__(self, inner: PackageSource, *, timeout: float) -> None:
        self._inner = inner
        self._timeout = timeout

    def query(self, name: str, platform: PlatformId) -> ToolReference | None:
        return call_with_timeout(
            self._inner.query,
            name,
            platform,
            timeout=self._timeout,
            platform=platform,
            operation=f"query({name})",
        )

    def query_variants(self, selector: ToolchainSelector, platform: PlatformId) -> frozenset[ToolVariant]:
        return call_with_timeout(
            self._inner.query_variants,
            selector,
            platform,
            timeout=self._timeout,
            platform=platform,
            operation=f"query_variants({selector.describe()})",
        )

    def snapshot(self) -> PackageSet:
        return call_with_timeout(
            self._inner.snapshot,
            timeout=self._timeout,
            platform=ANY_PLATFORM,
            operation="snapshot",
        )


def call_with_timeout(
    func: Callable[..., ResultT],
    *args: object,
    timeout: float,
    platform: PlatformId,
    operation: str,
) -> ResultT:
    """Run ``func(*args)`` and give up after ``timeout`` seconds.

    Args:
        func: Source operation to invoke.
        *args: Positional arguments forwarded to ``func``.
        timeout: Maximum number of seconds to wait for a result.
        platform: Platform attributed to any resulting failure.
        operation: Short description used in error messages.

    Returns:
        ResultT: Value returned by ``func``.

    Raises:
        SourceUnavailable: If the call times out or fails with ``OSError``.
    """

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="devshell-source")
    try:
        future = executor.submit(func, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise SourceUnavailable(
                f"package source {operation} timed out after {timeout:g}s",
                platform=platform,
            ) from exc
        except OSError as exc:
            raise SourceUnavailable(f"package source {operation} failed: {exc}", platform=platform) from exc
    finally:
        executor.shutdown(wait=False)


def retry_source_call(
    func: Callable[[], ResultT],
    *,
    attempts: int = 3,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ResultT:
    """Invoke ``func`` retrying :class:`SourceUnavailable` with exponential backoff.

    This is the caller-side retry policy; the source wrappers themselves never retry.

    Args:
        func: Zero-argument callable performing the source-dependent work.
        attempts: Total number of attempts, at least one.
        initial_delay: Delay in seconds before the second attempt.
        backoff_factor: Multiplier applied to the delay after each failure.
        max_delay: Upper bound for a single delay.
        sleep: Sleep function, injectable for tests.

    Returns:
        ResultT: Value returned by the first successful attempt.

    Raises:
        SourceUnavailable: The last failure once ``attempts`` are exhausted.
    """

    delay = initial_delay
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            return func()
        except SourceUnavailable as exc:
            if attempt >= attempts:
                LOGGER.error("package source still unavailable after %d attempts", attempt)
                raise
            LOGGER.warning("package source attempt %d/%d failed: %s", attempt, attempts, exc)
            sleep(delay)
            delay = min(delay * backoff_factor, max_delay)
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = [
    "PackageSource",
    "RefreshingPackageSource",
    "StaticPackageSource",
    "TimedPackageSource",
    "call_with_timeout",
    "retry_source_call",
]
