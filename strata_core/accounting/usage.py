from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from strata_core.logging import get_logger
from strata_core.records.scanner import scan_records
from strata_core.records.types import ArchiveStore, RecordDescriptor, Tier
from strata_core.retention import RetentionPolicy
from strata_core.storage.object_store import RecordStore
from strata_core.storage.paths import (
    COMPRESSED_SUFFIX,
    PINNED_SUFFIX,
    RAW_SUFFIX,
    SUMMARY_SUFFIX,
)

logger = get_logger(__name__)


class DiskState(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class TierUsage:
    count: int = 0
    bytes: int = 0

    @classmethod
    def from_records(cls, records: Iterable[RecordDescriptor]) -> "TierUsage":
        count = 0
        total = 0
        for record in records:
            count += 1
            total += record.size_bytes
        return cls(count=count, bytes=total)


@dataclass(frozen=True)
class UsageSnapshot:
    raw: TierUsage
    compressed: TierUsage
    summary: TierUsage
    pinned: TierUsage
    max_budget_bytes: int
    warning_budget_bytes: int

    @property
    def budget_bytes_used(self) -> int:
        """Bytes counted against the budget; summaries and pins are exempt."""
        return self.raw.bytes + self.compressed.bytes

    @property
    def state(self) -> DiskState:
        return classify_bytes(
            self.budget_bytes_used,
            max_bytes=self.max_budget_bytes,
            warning_bytes=self.warning_budget_bytes,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw": {"count": self.raw.count, "bytes": self.raw.bytes},
            "compressed": {
                "count": self.compressed.count,
                "bytes": self.compressed.bytes,
            },
            "summary": {"count": self.summary.count, "bytes": self.summary.bytes},
            "pinned": {"count": self.pinned.count, "bytes": self.pinned.bytes},
            "budget_bytes_used": self.budget_bytes_used,
            "max_budget_bytes": self.max_budget_bytes,
            "warning_budget_bytes": self.warning_budget_bytes,
            "state": self.state.value,
        }


def classify_bytes(
    used_bytes: int,
    *,
    max_bytes: int,
    warning_bytes: int,
) -> DiskState:
    if used_bytes >= max_bytes:
        return DiskState.CRITICAL
    if used_bytes >= warning_bytes:
        return DiskState.WARNING
    return DiskState.NORMAL


def measure_usage(store: RecordStore, policy: RetentionPolicy) -> UsageSnapshot:
    paths = store.paths
    snapshot = UsageSnapshot(
        raw=TierUsage.from_records(
            scan_records(paths.results_dir, RAW_SUFFIX, Tier.RAW, fs=store.fs)
        ),
        compressed=TierUsage.from_records(
            scan_records(
                paths.compressed_dir, COMPRESSED_SUFFIX, Tier.COMPRESSED, fs=store.fs
            )
        ),
        summary=TierUsage.from_records(
            scan_records(paths.summary_dir, SUMMARY_SUFFIX, Tier.SUMMARY, fs=store.fs)
        ),
        pinned=TierUsage.from_records(
            scan_records(
                paths.pinned_dir, PINNED_SUFFIX, ArchiveStore.PINNED, fs=store.fs
            )
        ),
        max_budget_bytes=policy.max_budget_bytes,
        warning_budget_bytes=policy.warning_budget_bytes,
    )
    state = snapshot.state
    extra = {
        "state": state.value,
        "budget_bytes_used": snapshot.budget_bytes_used,
        "max_budget_bytes": policy.max_budget_bytes,
        "warning_budget_bytes": policy.warning_budget_bytes,
    }
    if state == DiskState.CRITICAL:
        logger.error(
            "Disk budget exceeded; retention policy cannot keep up with ingestion",
            extra=extra,
        )
    elif state == DiskState.WARNING:
        logger.warning("Disk usage above warning threshold", extra=extra)
    return snapshot
