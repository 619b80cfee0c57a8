# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Schema loading utilities for validating descriptor documents."""

from __future__ import annotations

import importlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol, cast, runtime_checkable

from .errors import DescriptorValidationError
from .io import load_schema
from .types import JSONValue

SCHEMA_ROOT: Final[Path] = Path(__file__).resolve().parent / "schemas"
DESCRIPTOR_SCHEMA_NAME: Final[str] = "environment_descriptor.schema.json"


class SchemaValidationError(Protocol):
    """Represent schema validation errors surfaced by jsonschema."""

    @property
    def message(self) -> str:
        """Return the descriptive validation error message."""

    @property
    def json_path(self) -> str:
        """Return the JSON path of the offending value."""


@runtime_checkable
class SchemaValidator(Protocol):
    """Protocol describing the minimal interface exposed by jsonschema validators."""

    def iter_errors(self, instance: JSONValue) -> Iterable[SchemaValidationError]:
        """Iterate over validation errors for ``instance``."""


SchemaValidatorFactory = Callable[[JSONValue], SchemaValidator]

jsonschema_module = importlib.import_module("jsonschema")
Draft202012Validator = cast(SchemaValidatorFactory, jsonschema_module.Draft202012Validator)


@dataclass(slots=True)
class SchemaRepository:
    """Hold the descriptor JSON schema validator."""

    schema_root: Path
    descriptor_validator: SchemaValidator

    @classmethod
    def load(cls, schema_root: Path | None = None) -> SchemaRepository:
        """Load schema validators from ``schema_root`` or the bundled schemas."""

        resolved_root = schema_root or SCHEMA_ROOT
        schema = load_schema(resolved_root / DESCRIPTOR_SCHEMA_NAME)
        return cls(schema_root=resolved_root, descriptor_validator=Draft202012Validator(schema))

    def validate_descriptor(self, document: JSONValue, *, context: str) -> None:
        """Validate ``document`` against the descriptor schema.

        Raises:
            DescriptorValidationError: Listing every schema violation found.
        """

        errors = sorted(self.descriptor_validator.iter_errors(document), key=lambda error: error.json_path)
        if errors:
            details = "; ".join(f"{error.json_path}: {error.message}" for error in errors)
            raise DescriptorValidationError(f"{context}: {details}")


__all__ = ["DESCRIPTOR_SCHEMA_NAME", "SCHEMA_ROOT", "SchemaRepository"]
