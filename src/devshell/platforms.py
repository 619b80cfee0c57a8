# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Enumerate the target platforms an environment descriptor is resolved for."""

from __future__ import annotations

import platform as host_platform
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Final, Protocol, runtime_checkable

from .errors import PlatformDiscoveryFailed
from .types import DEFAULT_SYSTEMS, PlatformId

ARCH_ALIASES: Final[dict[str, str]] = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}

SUPPORTED_SYSTEMS: Final[frozenset[str]] = frozenset({"linux", "darwin"})


@runtime_checkable
class PlatformEnumerator(Protocol):
    """Produce the non-empty set of platforms to evaluate."""

    def enumerate(self) -> frozenset[PlatformId]:
        """Return the platforms to evaluate.

        Raises:
            PlatformDiscoveryFailed: If the platforms cannot be determined.
        """


class StaticPlatformEnumerator:
    """Enumerate an explicit list of platforms."""

    def __init__(self, platforms: Iterable[PlatformId]) -> None:
        self._platforms = tuple(platforms)

    def enumerate(self) -> frozenset[PlatformId]:
        platforms = frozenset(item.strip() for item in self._platforms if item.strip())
        if not platforms:
            raise PlatformDiscoveryFailed("no target platforms configured")
        return platforms


class DefaultPlatformEnumerator(StaticPlatformEnumerator):
    """Enumerate the default Linux and Darwin systems on x86_64 and aarch64."""

    def __init__(self) -> None:
        super().__init__(DEFAULT_SYSTEMS)


class HostPlatformEnumerator:
    """Enumerate the platform of the running host."""

    def enumerate(self) -> frozenset[PlatformId]:
        return frozenset({host_platform_id()})


class TimedPlatformEnumerator:
    """Bound another enumerator's discovery with a timeout."""

    def __init__(self, inner: PlatformEnumerator, *, timeout: float) -> None:
        self._inner = inner
        self._timeout = timeout

    def enumerate(self) -> frozenset[PlatformId]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="devshell-platforms")
        try:
            future = executor.submit(self._inner.enumerate)
            try:
                platforms = future.result(timeout=self._timeout)
            except FutureTimeoutError as exc:
                raise PlatformDiscoveryFailed(f"platform discovery timed out after {self._timeout:g}s") from exc
            except OSError as exc:
                raise PlatformDiscoveryFailed(f"platform discovery failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False)
        if not platforms:
            raise PlatformDiscoveryFailed("platform discovery returned no platforms")
        return frozenset(platforms)


def host_platform_id(system: str | None = None, machine: str | None = None) -> PlatformId:
    """Return the ``<arch>-<os>`` identifier for the host or the given values.

    Args:
        system: Operating system name; defaults to :func:`platform.system`.
        machine: Machine architecture; defaults to :func:`platform.machine`.

    Returns:
        PlatformId: Identifier such as ``x86_64-linux``.

    Raises:
        PlatformDiscoveryFailed: If the architecture or OS is unsupported.
    """

    system_name = (system if system is not None else host_platform.system()).lower()
    machine_raw = (machine if machine is not None else host_platform.machine()).lower()
    arch = ARCH_ALIASES.get(machine_raw)
    if arch is None:
        raise PlatformDiscoveryFailed(f"Unsupported architecture: {machine_raw or '<unknown>'}")
    if system_name not in SUPPORTED_SYSTEMS:
        raise PlatformDiscoveryFailed(f"Unsupported platform: {system_name or '<unknown>'}-{arch}")
    return f"{arch}-{system_name}"


def build_enumerator(
    platforms: Iterable[PlatformId] = (),
    *,
    host: bool = False,
    configured: Iterable[PlatformId] = (),
    timeout: float | None = None,
) -> PlatformEnumerator:
    """Return the enumerator matching CLI and configuration choices.

    Precedence is explicit ``platforms``, then ``host``, then ``configured``
    platforms from configuration, then the default systems.
    """

    explicit = tuple(platforms)
    from_config = tuple(configured)
    enumerator: PlatformEnumerator
    if explicit:
        enumerator = StaticPlatformEnumerator(explicit)
    elif host:
        enumerator = HostPlatformEnumerator()
    elif from_config:
        enumerator = StaticPlatformEnumerator(from_config)
    else:
        enumerator = DefaultPlatformEnumerator()
    if timeout is not None:
        enumerator = TimedPlatformEnumerator(enumerator, timeout=timeout)
    return enumerator


__all__ = [
    "ARCH_ALIASES",
    "DefaultPlatformEnumerator",
    "HostPlatformEnumerator",
    "PlatformEnumerator",
    "StaticPlatformEnumerator",
    "TimedPlatformEnumerator",
    "build_enumerator",
    "host_platform_id",
]
