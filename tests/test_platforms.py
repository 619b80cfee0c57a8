# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for target platform enumeration."""

from __future__ import annotations

import threading

import pytest

from devshell.errors import PlatformDiscoveryFailed
from devshell.platforms import (
    DefaultPlatformEnumerator,
    HostPlatformEnumerator,
    StaticPlatformEnumerator,
    TimedPlatformEnumerator,
    build_enumerator,
    host_platform_id,
)
from devshell.types import DEFAULT_SYSTEMS


def test_default_enumerator_lists_default_systems() -> None:
    assert DefaultPlatformEnumerator().enumerate() == frozenset(DEFAULT_SYSTEMS)


def test_static_enumerator_removes_duplicates_and_blanks() -> None:
    enumerator = StaticPlatformEnumerator(["x86_64-linux", " x86_64-linux ", ""])

    assert enumerator.enumerate() == frozenset({"x86_64-linux"})


def test_static_enumerator_rejects_empty_input() -> None:
    with pytest.raises(PlatformDiscoveryFailed):
        StaticPlatformEnumerator([]).enumerate()


@pytest.mark.parametrize(
    ("system", "machine", "expected"),
    [
        ("Linux", "x86_64", "x86_64-linux"),
        ("Linux", "AMD64", "x86_64-linux"),
        ("Darwin", "arm64", "aarch64-darwin"),
        ("linux", "aarch64", "aarch64-linux"),
    ],
)
def test_host_platform_id_normalises_aliases(system: str, machine: str, expected: str) -> None:
    assert host_platform_id(system, machine) == expected


def test_host_platform_id_rejects_unknown_hosts() -> None:
    with pytest.raises(PlatformDiscoveryFailed, match="architecture"):
        host_platform_id("Linux", "sparc64")
    with pytest.raises(PlatformDiscoveryFailed, match="Unsupported platform"):
        host_platform_id("Windows", "x86_64")


def test_host_enumerator_uses_platform_module(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("devshell.platforms.host_platform.system", lambda: "Darwin")
    monkeypatch.setattr("devshell.platforms.host_platform.machine", lambda: "arm64")

    assert HostPlatformEnumerator().enumerate() == frozenset({"aarch64-darwin"})


def test_timed_enumerator_surfaces_timeout() -> None:
    release = threading.Event()

    class _Hanging:
        def enumerate(self) -> frozenset[str]:
            release.wait(5)
            return frozenset({"x86_64-linux"})

    try:
        with pytest.raises(PlatformDiscoveryFailed, match="timed out"):
            TimedPlatformEnumerator(_Hanging(), timeout=0.05).enumerate()
    finally:
        release.set()


def test_build_enumerator_prefers_explicit_platforms() -> None:
    assert build_enumerator(["aarch64-linux"], host=True).enumerate() == frozenset({"aarch64-linux"})
    assert build_enumerator([], host=False, timeout=1.0).enumerate() == frozenset(DEFAULT_SYSTEMS)


def test_build_enumerator_host_flag_overrides_configured_platforms(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("devshell.platforms.host_platform.system", lambda: "Linux")
    monkeypatch.setattr("devshell.platforms.host_platform.machine", lambda: "aarch64")
    configured = ["aarch64-darwin", "x86_64-linux"]

    assert build_enumerator(host=True, configured=configured).enumerate() == frozenset({"aarch64-linux"})
    assert build_enumerator(configured=configured).enumerate() == frozenset(configured)
    assert build_enumerator(["x86_64-darwin"], host=True, configured=configured).enumerate() == frozenset(
        {"x86_64-darwin"},
    )
