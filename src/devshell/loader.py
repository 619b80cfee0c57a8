# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""High-level loaders materialising descriptors and package catalogs from disk."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .io import load_document
from .model_descriptor import EnvironmentDescriptor
from .overlays import OverlayRegistry, discover_overlays
from .schema import SchemaRepository
from .source import StaticPackageSource
from .types import JSONValue
from .utils import expect_mapping


@dataclass(frozen=True, slots=True)
class Catalog:
    """Package source contents together with the named overlays it ships."""

    source: StaticPackageSource
    overlays: OverlayRegistry


def parse_catalog(data: Mapping[str, JSONValue], *, context: str = "<catalog>") -> Catalog:
    """Build a :class:`Catalog` from a catalog document mapping."""

    overlays_data = data.get("overlays")
    registry = (
        OverlayRegistry.from_mapping(expect_mapping(overlays_data, key="overlays", context=context), context=context)
        if overlays_data is not None
        else OverlayRegistry()
    )
    return Catalog(source=StaticPackageSource.from_mapping(data, context=context), overlays=registry)


def load_catalog(path: Path) -> Catalog:
    """Load a JSON or TOML package catalog from ``path``."""

    return parse_catalog(load_document(path), context=str(path))


@dataclass(slots=True)
class DescriptorLoader:
    """Validate and materialise environment descriptor documents."""

    registry: OverlayRegistry = field(default_factory=OverlayRegistry)
    schema_root: Path | None = None
    use_plugins: bool = True
    _schemas: SchemaRepository = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._schemas = SchemaRepository.load(self.schema_root)
        if self.use_plugins:
            self.registry = self.registry.merged(OverlayRegistry(discover_overlays()))

    def parse(self, data: Mapping[str, JSONValue], *, context: str = "<descriptor>") -> EnvironmentDescriptor:
        """Validate ``data`` and return the frozen descriptor.

        Raises:
            DescriptorValidationError: If ``data`` violates the descriptor schema.
            DescriptorIntegrityError: If ``data`` references unknown overlays or is malformed.
        """

        self._schemas.validate_descriptor(data, context=context)
        return EnvironmentDescriptor.from_mapping(data, context=context, registry=self.registry)

    def load(self, path: Path) -> EnvironmentDescriptor:
        """Load and validate the descriptor stored at ``path``."""

        return self.parse(load_document(path), context=str(path))


__all__ = ["Catalog", "DescriptorLoader", "load_catalog", "parse_catalog"]
