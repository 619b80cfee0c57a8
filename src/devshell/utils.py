# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Utility helpers for validating descriptor and catalog JSON structures."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .errors import DescriptorIntegrityError
from .types import JSONValue


def expect_string(value: JSONValue | None, *, key: str, context: str) -> str:
    """Return ``value`` as a non-empty string or raise a descriptor error.

    Args:
        value: Raw JSON value extracted from the document.
        key: Attribute name used in error messages.
        context: Human-friendly prefix describing the validation context.

    Returns:
        str: Validated string value.

    Raises:
        DescriptorIntegrityError: If ``value`` is not a non-empty string.
    """
    if not isinstance(value, str) or not value.strip():
        raise DescriptorIntegrityError(f"{context}: expected '{key}' to be a non-empty string")
    return value


def optional_string(value: JSONValue | None, *, key: str, context: str) -> str | None:
    """Return ``value`` as an optional string with validation.

    Args:
        value: Raw JSON value extracted from the document.
        key: Attribute name used in error messages.
        context: Human-friendly prefix describing the validation context.

    Returns:
        str | None: ``value`` when present, otherwise ``None``.

    Raises:
        DescriptorIntegrityError: If ``value`` is present but not a string.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise DescriptorIntegrityError(f"{context}: expected '{key}' to be a string if present")
    return value


def string_array(value: JSONValue | None, *, key: str, context: str) -> tuple[str, ...]:
    """Return ``value`` as a tuple of strings with validation.

    Args:
        value: Raw JSON value extracted from the document.
        key: Attribute name used in error messages.
        context: Human-friendly prefix describing the validation context.

    Returns:
        tuple[str, ...]: Tuple containing all string entries from ``value``.

    Raises:
        DescriptorIntegrityError: If ``value`` is not a sequence of strings.
    """
    if value is None:
        return ()
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        raise DescriptorIntegrityError(f"{context}: expected '{key}' to be an array of strings")
    result: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise DescriptorIntegrityError(f"{context}: expected '{key}[{index}]' to be a string")
        result.append(item)
    return tuple(result)


def expect_mapping(value: JSONValue | None, *, key: str, context: str) -> Mapping[str, JSONValue]:
    """Return ``value`` as a mapping of JSON values or raise an error.

    Args:
        value: Raw JSON value extracted from the document.
        key: Attribute name used in error messages.
        context: Human-friendly prefix describing the validation context.

    Returns:
        Mapping[str, JSONValue]: Mapping derived from ``value``.

    Raises:
        DescriptorIntegrityError: If ``value`` is not a mapping.
    """
    if not isinstance(value, Mapping):
        raise DescriptorIntegrityError(f"{context}: expected '{key}' to be an object")
    return value


def mapping_array(value: JSONValue | None, *, key: str, context: str) -> tuple[Mapping[str, JSONValue], ...]:
    """Return ``value`` as a tuple of JSON objects.

    A single mapping is accepted and wrapped so documents can declare one
    entry without an enclosing array.
    """
    if value is None:
        return ()
    if isinstance(value, Mapping):
        return (value,)
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        raise DescriptorIntegrityError(f"{context}: expected '{key}' to be an object or array of objects")
    return tuple(
        expect_mapping(item, key=f"{key}[{index}]", context=context) for index, item in enumerate(value)
    )


__all__ = [
    "expect_mapping",
    "expect_string",
    "mapping_array",
    "optional_string",
    "string_array",
]
