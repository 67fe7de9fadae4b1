from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class Tier(str, Enum):
    RAW = "raw"
    COMPRESSED = "compressed"
    SUMMARY = "summary"
    DELETED = "deleted"


class ArchiveStore(str, Enum):
    """Archive areas outside the lifecycle: pinned findings and pass reports."""

    PINNED = "pinned"
    REPORTS = "reports"


RecordLocation = Union[Tier, ArchiveStore]


@dataclass(frozen=True)
class RecordDescriptor:
    record_id: str
    path: str
    modified_at: datetime
    size_bytes: int
    tier: RecordLocation

    def age_days(self, now: datetime) -> float:
        return (now - self.modified_at).total_seconds() / 86400.0


@dataclass(frozen=True)
class PinnedFinding:
    record_id: str
    severity: str
    tests: list[dict[str, Any]]
    metadata: dict[str, Any]
    pinned_at: str
    source_modified_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PinnedFinding":
        return cls(
            record_id=str(data.get("record_id", "")),
            severity=str(data.get("severity", "")),
            tests=list(data.get("tests") or []),
            metadata=dict(data.get("metadata") or {}),
            pinned_at=str(data.get("pinned_at", "")),
            source_modified_at=str(data.get("source_modified_at", "")),
        )


@dataclass(frozen=True)
class ExtractionResult:
    record_id: str
    critical: bool
    pinned: bool
    error: str | None = None
    matched_tests: tuple[dict[str, Any], ...] = field(default_factory=tuple)
