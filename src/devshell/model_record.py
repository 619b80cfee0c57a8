# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolution outputs: per-platform environment records and aggregate reports."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field, model_validator

from .errors import ResolutionError
from .package_set import ToolReference
from .types import PlatformId


class EnvironmentRecord(BaseModel):
    """Resolved tools and startup action for one descriptor on one platform."""

    model_config = ConfigDict(frozen=True)

    platform: PlatformId
    shell: str
    tools: tuple[ToolReference, ...]
    startup: str
    source_revision: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fingerprint(self) -> str:
        """Return a SHA-256 digest over the record contents."""

        hasher = hashlib.sha256()
        payload = {
            "platform": self.platform,
            "shell": self.shell,
            "tools": [tool.model_dump() for tool in self.tools],
            "startup": self.startup,
            "source_revision": self.source_revision,
        }
        hasher.update(json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8"))
        return hasher.hexdigest()

    @property
    def references(self) -> tuple[str, ...]:
        return tuple(tool.reference for tool in self.tools)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible mapping consumed by shell constructors."""

        return self.model_dump(mode="json")


class PlatformOutcome(BaseModel):
    """Success or failure of a single platform resolution."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    platform: PlatformId
    record: EnvironmentRecord | None = None
    error: ResolutionError | None = None

    @model_validator(mode="after")
    def check_exactly_one(self) -> PlatformOutcome:
        if (self.record is None) == (self.error is None):
            raise ValueError("an outcome carries either a record or an error")
        return self

    @property
    def ok(self) -> bool:
        return self.record is not None

    def to_payload(self) -> dict[str, Any]:
        if self.error is not None:
            return {
                "status": "error",
                "platform": self.platform,
                "error": {"kind": self.error.kind, "message": str(self.error)},
            }
        if self.record is None:
            raise ValueError("an outcome carries either a record or an error")
        return {"status": "ok", **self.record.to_payload()}


class ResolutionReport(Mapping[PlatformId, PlatformOutcome]):
    """Per-platform outcomes of resolving one descriptor across platforms."""

    def __init__(self, outcomes: Mapping[PlatformId, PlatformOutcome]) -> None:
        self._outcomes = dict(sorted(outcomes.items()))

    def __getitem__(self, platform: PlatformId) -> PlatformOutcome:
        return self._outcomes[platform]

    def __iter__(self) -> Iterator[PlatformId]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    @property
    def succeeded(self) -> dict[PlatformId, EnvironmentRecord]:
        return {
            platform: outcome.record
            for platform, outcome in self._outcomes.items()
            if outcome.record is not None
        }

    @property
    def failed(self) -> dict[PlatformId, ResolutionError]:
        return {
            platform: outcome.error
            for platform, outcome in self._outcomes.items()
            if outcome.error is not None
        }

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_payload(self) -> dict[str, Any]:
        return {platform: outcome.to_payload() for platform, outcome in self._outcomes.items()}


__all__ = ["EnvironmentRecord", "PlatformOutcome", "ResolutionReport"]
