# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Behavioural tests for per-platform descriptor resolution."""

from __future__ import annotations

from types import MappingProxyType

import pytest

from devshell import (
    AmbiguousSelector,
    DescriptorResolver,
    EnvironmentDescriptor,
    EnvironmentOutputs,
    FunctionOverlay,
    NoMatchingVariant,
    PackageOverlay,
    PlatformDiscoveryFailed,
    PackageSet,
    RefreshingPackageSource,
    Source,
    SourceMismatch,
    SourceUnavailable,
    StaticPackageSource,
    StaticPlatformEnumerator,
    ToolchainSelector,
    ToolReference,
    ToolVariant,
    UnresolvedTool,
    resolve,
    resolve_all,
)
from devshell.package_set import ANY_PLATFORM


def _descriptor(**overrides: object) -> EnvironmentDescriptor:
    fields: dict[str, object] = {"source": Source.parse("pkgs@rev123")}
    fields.update(overrides)
    return EnvironmentDescriptor(**fields)  # type: ignore[arg-type]


def _overlay(name: str, tool: str, reference: str) -> PackageOverlay:
    return PackageOverlay(
        name=name,
        packages=MappingProxyType({tool: {ANY_PLATFORM: ToolReference(name=tool, reference=reference)}}),
    )


def test_worked_example_resolves_tools_then_latest_nightly(package_set: PackageSet) -> None:
    descriptor = _descriptor(
        tools=("openssl", "pkg-config"),
        toolchains=(ToolchainSelector(channel="latest-nightly", extensions=frozenset({"a", "b"})),),
        startup="noop",
    )

    record = resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))

    assert record.references == ("openssl-ref", "pkg-config-ref", "toolchain-2024-02-01-ref")
    assert record.startup == "noop"
    assert record.platform == "x86_64-linux"
    assert record.source_revision == "rev123"


def test_resolution_is_idempotent(package_set: PackageSet) -> None:
    descriptor = _descriptor(
        tools=("openssl", "perf"),
        toolchains=(ToolchainSelector(channel="nightly"),),
    )
    source = StaticPackageSource(package_set)

    first = resolve(descriptor, "aarch64-linux", source)
    second = resolve(descriptor, "aarch64-linux", source)

    assert first == second
    assert first.fingerprint == second.fingerprint
    assert first is not second


def test_later_overlay_shadows_earlier_definition(package_set: PackageSet) -> None:
    descriptor = _descriptor(
        tools=("x",),
        overlays=(_overlay("o1", "x", "x-from-o1"), _overlay("o2", "x", "x-from-o2")),
    )

    record = resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))

    assert record.references == ("x-from-o2",)


def test_overlays_fold_sequentially(package_set: PackageSet) -> None:
    seen: list[tuple[str, ...]] = []

    def _record_names(packages: PackageSet) -> PackageSet:
        seen.append(packages.names)
        return packages

    descriptor = _descriptor(
        tools=("x",),
        overlays=(_overlay("o1", "x", "x-ref"), FunctionOverlay(name="recorder", function=_record_names)),
    )

    resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))

    assert "x" in seen[0]
    assert "x" not in package_set.names


def test_latest_prefers_highest_semantic_version() -> None:
    variants = tuple(
        ToolVariant(name="toolchain", channel="stable", version=version, reference=f"tc-{version}")
        for version in ("1.2", "1.3", "1.1")
    )
    source = StaticPackageSource(PackageSet().with_variants(variants))
    descriptor = _descriptor(toolchains=(ToolchainSelector(channel="latest-stable"),))

    record = resolve(descriptor, "x86_64-linux", source)

    assert record.references == ("tc-1.3",)


def test_missing_tool_fails_only_for_affected_platform(package_set: PackageSet) -> None:
    descriptor = _descriptor(tools=("perf",))
    source = StaticPackageSource(package_set)

    with pytest.raises(UnresolvedTool) as excinfo:
        resolve(descriptor, "x86_64-darwin", source)
    assert excinfo.value.platform == "x86_64-darwin"
    assert excinfo.value.name == "perf"

    record = resolve(descriptor, "x86_64-linux", source)
    assert record.references == ("perf-x86_64-ref",)


def test_no_matching_variant_when_extension_missing(package_set: PackageSet) -> None:
    descriptor = _descriptor(
        toolchains=(ToolchainSelector(channel="latest-nightly", extensions=frozenset({"rust-src"})),),
    )

    with pytest.raises(NoMatchingVariant):
        resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))


def test_ambiguous_selector_when_versions_tie() -> None:
    variants = (
        ToolVariant(name="toolchain", channel="nightly", version="2024-02-01", reference="tc-a"),
        ToolVariant(name="toolchain", channel="nightly", version="2024-02-01", reference="tc-b"),
    )
    source = StaticPackageSource(PackageSet().with_variants(variants))
    descriptor = _descriptor(toolchains=(ToolchainSelector(channel="nightly"),))

    with pytest.raises(AmbiguousSelector) as excinfo:
        resolve(descriptor, "x86_64-linux", source)
    assert excinfo.value.candidates == ("tc-a", "tc-b")


def test_duplicate_references_are_listed_once(package_set: PackageSet) -> None:
    descriptor = _descriptor(tools=("openssl", "openssl", "pkg-config"))

    record = resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))

    assert record.references == ("openssl-ref", "pkg-config-ref")


def test_injected_ordering_controls_latest_choice(package_set: PackageSet) -> None:
    descriptor = _descriptor(toolchains=(ToolchainSelector(channel="nightly"),))
    oldest_first = DescriptorResolver(ordering=lambda version: (0, tuple(-ord(char) for char in version)))

    record = oldest_first.resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))

    assert record.references == ("toolchain-2024-01-01-ref",)


class _PerPlatformSource:
    """Test double answering snapshots from a mutable per-platform table."""

    def __init__(self, responses: dict[str, str]) -> None:
        self.responses = responses

    def snapshot(self) -> PackageSet:
        references = {
            platform: ToolReference(name="cc", reference=reference) for platform, reference in self.responses.items()
        }
        return PackageSet().with_packages({"cc": references})

    def query(self, name: str, platform: str) -> ToolReference | None:
        return self.snapshot().lookup(name, platform)

    def query_variants(self, selector: ToolchainSelector, platform: str) -> frozenset[ToolVariant]:
        return frozenset()


def test_enumerated_platforms_resolve_independently() -> None:
    source = _PerPlatformSource({"linux-x64": "cc-linux", "darwin-arm64": "cc-darwin"})
    enumerator = StaticPlatformEnumerator(["linux-x64", "darwin-arm64"])
    descriptor = _descriptor(tools=("cc",))

    before = resolve_all(descriptor, enumerator, source)
    source.responses["linux-x64"] = "cc-linux-patched"
    after = resolve_all(descriptor, enumerator, source)

    assert sorted(before) == ["darwin-arm64", "linux-x64"]
    assert after["linux-x64"].record is not None
    assert after["linux-x64"].record.references == ("cc-linux-patched",)
    assert before["darwin-arm64"].record == after["darwin-arm64"].record


def test_failure_on_one_platform_does_not_abort_others(package_set: PackageSet) -> None:
    enumerator = StaticPlatformEnumerator(["x86_64-linux", "aarch64-darwin", "aarch64-linux"])
    descriptor = _descriptor(tools=("perf",))

    report = resolve_all(descriptor, enumerator, StaticPackageSource(package_set), jobs=3)

    assert sorted(report.succeeded) == ["aarch64-linux", "x86_64-linux"]
    assert list(report.failed) == ["aarch64-darwin"]
    assert isinstance(report.failed["aarch64-darwin"], UnresolvedTool)
    assert report.exit_code == 1
    payload = report.to_payload()
    assert payload["aarch64-darwin"]["status"] == "error"
    assert payload["aarch64-darwin"]["error"]["kind"] == "unresolved-tool"
    assert payload["x86_64-linux"]["tools"][0]["reference"] == "perf-x86_64-ref"


def test_parallel_and_sequential_reports_match(package_set: PackageSet) -> None:
    enumerator = StaticPlatformEnumerator(["x86_64-linux", "aarch64-linux", "x86_64-darwin", "aarch64-darwin"])
    descriptor = _descriptor(tools=("openssl",), toolchains=(ToolchainSelector(channel="latest-nightly"),))
    source = StaticPackageSource(package_set)

    sequential = resolve_all(descriptor, enumerator, source, jobs=1)
    parallel = resolve_all(descriptor, enumerator, source, jobs=4)

    assert sequential.to_payload() == parallel.to_payload()
    assert sequential.ok


def test_snapshot_unavailable_is_scoped_to_platform() -> None:
    class _Unavailable:
        def snapshot(self) -> PackageSet:
            raise SourceUnavailable("catalog offline", platform=ANY_PLATFORM)

    with pytest.raises(SourceUnavailable) as excinfo:
        resolve(_descriptor(), "x86_64-linux", _Unavailable())  # type: ignore[arg-type]
    assert excinfo.value.platform == "x86_64-linux"


def test_environment_outputs_compute_on_access(package_set: PackageSet) -> None:
    source = RefreshingPackageSource(package_set)
    descriptor = _descriptor(tools=("openssl",))
    outputs = EnvironmentOutputs(descriptor, frozenset({"x86_64-linux"}), source)

    assert list(outputs) == ["x86_64-linux"]
    assert outputs["x86_64-linux"].references == ("openssl-ref",)

    source.refresh(package_set.with_packages({"openssl": {ANY_PLATFORM: ToolReference(name="openssl", reference="openssl-new")}}))

    assert outputs["x86_64-linux"].references == ("openssl-new",)
    with pytest.raises(KeyError):
        outputs["aarch64-darwin"]


def test_platform_specific_overlay_keeps_other_platforms(package_set: PackageSet) -> None:
    pinned = PackageOverlay(
        name="pin-linux",
        packages=MappingProxyType(
            {"openssl": {"x86_64-linux": ToolReference(name="openssl", reference="openssl-linux-pinned")}},
        ),
    )
    descriptor = _descriptor(tools=("openssl",), overlays=(pinned,))
    source = StaticPackageSource(package_set)

    assert resolve(descriptor, "x86_64-linux", source).references == ("openssl-linux-pinned",)
    assert resolve(descriptor, "aarch64-darwin", source).references == ("openssl-ref",)


def test_overlay_adds_and_replaces_toolchain_variants(package_set: PackageSet) -> None:
    newer = ToolVariant(
        name="toolchain",
        channel="nightly",
        version="2024-03-01",
        reference="toolchain-2024-03-01-ref",
        extensions=frozenset({"a", "b"}),
    )
    narrowed = ToolVariant(
        name="toolchain",
        channel="nightly",
        version="2024-02-01",
        reference="toolchain-2024-02-01-ref",
    )
    selector = ToolchainSelector(channel="latest-nightly", extensions=frozenset({"a"}))
    source = StaticPackageSource(package_set)

    added = resolve(
        _descriptor(toolchains=(selector,), overlays=(PackageOverlay(name="nightly", variants=(newer,)),)),
        "x86_64-linux",
        source,
    )
    replaced = resolve(
        _descriptor(toolchains=(selector,), overlays=(PackageOverlay(name="narrow", variants=(narrowed,)),)),
        "x86_64-linux",
        source,
    )

    assert added.references == ("toolchain-2024-03-01-ref",)
    assert replaced.references == ("toolchain-2024-01-01-ref",)


def test_pinned_revision_must_match_source(package_set: PackageSet) -> None:
    descriptor = EnvironmentDescriptor(source=Source.parse("pkgs@rev999"), tools=("openssl",))

    with pytest.raises(SourceMismatch) as excinfo:
        resolve(descriptor, "x86_64-linux", StaticPackageSource(package_set))
    assert excinfo.value.platform == "x86_64-linux"
    assert excinfo.value.kind == "source-mismatch"

    unpinned = EnvironmentDescriptor(source=Source.parse("pkgs"), tools=("openssl",))
    record = resolve(unpinned, "x86_64-linux", StaticPackageSource(package_set))
    assert record.source_revision == "rev123"


def test_snapshot_transport_error_is_reported_per_platform() -> None:
    class _Offline:
        def snapshot(self) -> PackageSet:
            raise ConnectionError("connection refused")

    enumerator = StaticPlatformEnumerator(["x86_64-linux", "aarch64-darwin"])

    report = resolve_all(_descriptor(), enumerator, _Offline(), jobs=2)  # type: ignore[arg-type]

    assert sorted(report.failed) == ["aarch64-darwin", "x86_64-linux"]
    assert all(isinstance(error, SourceUnavailable) for error in report.failed.values())
    assert report.failed["aarch64-darwin"].platform == "aarch64-darwin"


def test_platform_discovery_failure_aborts_run(package_set: PackageSet) -> None:
    with pytest.raises(PlatformDiscoveryFailed):
        resolve_all(_descriptor(), StaticPlatformEnumerator([]), StaticPackageSource(package_set))
