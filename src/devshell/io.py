# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Read descriptor documents, package catalogs and schemas from disk."""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, BinaryIO, Final

from .errors import DescriptorIntegrityError
from .types import JSONValue

DocumentParser = Callable[[BinaryIO], Any]


def _parse_toml(stream: BinaryIO) -> Any:
    return _toml_to_json(tomllib.load(stream))


PARSERS: Final[dict[str, tuple[DocumentParser, type[ValueError]]]] = {
    ".json": (json.load, json.JSONDecodeError),
    ".toml": (_parse_toml, tomllib.TOMLDecodeError),
}


def load_document(path: Path) -> Mapping[str, JSONValue]:
    """Load a JSON or TOML document from ``path`` as a JSON object.

    Files without a ``.toml`` suffix are parsed as JSON. TOML dates and times
    become ISO 8601 strings, so ``version = 2024-02-01`` reads the same as the
    quoted JSON form.

    Raises:
        FileNotFoundError: If the document is missing.
        DescriptorIntegrityError: If the document cannot be parsed or is not an object.
    """

    if not path.is_file():
        raise FileNotFoundError(path)
    parse, decode_error = PARSERS.get(path.suffix.lower(), PARSERS[".json"])
    with path.open("rb") as stream:
        try:
            payload = parse(stream)
        except decode_error as exc:
            raise DescriptorIntegrityError(f"{path}: failed to parse document: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise DescriptorIntegrityError(f"{path}: expected a top-level object")
    return payload


def load_schema(path: Path) -> Mapping[str, JSONValue]:
    """Load a bundled JSON schema."""

    return load_document(path)


def _toml_to_json(value: Any) -> JSONValue:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _toml_to_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_toml_to_json(item) for item in value]
    return value


__all__ = ["PARSERS", "load_document", "load_schema"]
