# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from devshell.package_set import PackageSet


@pytest.fixture
def catalog_payload() -> dict[str, object]:
    """Return a catalog exposing common build tools and nightly toolchains."""

    return {
        "revision": "rev123",
        "packages": {
            "openssl": "openssl-ref",
            "pkg-config": "pkg-config-ref",
            "perf": {"x86_64-linux": "perf-x86_64-ref", "aarch64-linux": "perf-aarch64-ref"},
        },
        "variants": [
            {
                "channel": "nightly",
                "version": "2024-01-01",
                "extensions": ["a", "b", "c"],
                "reference": "toolchain-2024-01-01-ref",
            },
            {
                "channel": "nightly",
                "version": "2024-02-01",
                "extensions": ["a", "b"],
                "reference": "toolchain-2024-02-01-ref",
            },
            {
                "channel": "stable",
                "version": "1.75.0",
                "extensions": ["a", "b"],
                "reference": "toolchain-1.75.0-ref",
            },
        ],
        "overlays": {
            "pinned-openssl": {"packages": {"openssl": "openssl-pinned-ref"}},
        },
    }


@pytest.fixture
def package_set(catalog_payload: dict[str, object]) -> PackageSet:
    return PackageSet.from_mapping(catalog_payload, context="<fixture>")


@pytest.fixture
def write_json(tmp_path: Path):
    """Return a helper serialising payloads as JSON files under ``tmp_path``."""

    def _write(name: str, payload: object) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    return _write
