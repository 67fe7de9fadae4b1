from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable

from strata_core.compaction.io import (
    delete_path,
    read_bytes,
    read_document,
    subtests,
    write_json,
)
from strata_core.errors import ParseError, StoreIOError
from strata_core.logging import get_logger
from strata_core.records.scanner import scan_records
from strata_core.records.types import (
    ExtractionResult,
    PinnedFinding,
    ArchiveStore,
    RecordDescriptor,
    Tier,
)
from strata_core.storage.object_store import RecordStore
from strata_core.storage.paths import PINNED_SUFFIX

logger = get_logger(__name__)

SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_HIGH = "HIGH"
_SEVERITY_RANK = {"CRITICAL": 4, "HIGH": 3, "MEDIUM": 2, "LOW": 1, "INFO": 0}


def _severity(test: dict[str, Any]) -> str:
    value = test.get("severity")
    if not isinstance(value, str):
        return ""
    return value.strip().upper()


def is_critical_test(test: dict[str, Any]) -> bool:
    severity = _severity(test)
    if severity == SEVERITY_CRITICAL:
        return True
    return severity == SEVERITY_HIGH and test.get("passed") is False


def critical_tests(document: dict[str, Any]) -> list[dict[str, Any]]:
    return [test for test in subtests(document) if is_critical_test(test)]


def highest_severity(tests: Iterable[dict[str, Any]]) -> str:
    best = ""
    for test in tests:
        severity = _severity(test)
        if _SEVERITY_RANK.get(severity, -1) > _SEVERITY_RANK.get(best, -1):
            best = severity
    return best


def build_pinned_finding(
    record: RecordDescriptor,
    document: dict[str, Any],
    matched: list[dict[str, Any]],
    *,
    pinned_at: datetime | None = None,
) -> PinnedFinding:
    metadata = {key: value for key, value in document.items() if key != "tests"}
    stamp = pinned_at or datetime.now(timezone.utc)
    return PinnedFinding(
        record_id=record.record_id,
        severity=highest_severity(matched),
        tests=[dict(test) for test in matched],
        metadata=metadata,
        pinned_at=stamp.isoformat(),
        source_modified_at=record.modified_at.isoformat(),
    )


def pin_document(
    store: RecordStore,
    record: RecordDescriptor,
    document: dict[str, Any],
    *,
    now: datetime | None = None,
) -> ExtractionResult:
    """Pin `document` when it matches; an existing pin is never rewritten."""
    matched = critical_tests(document)
    if not matched:
        return ExtractionResult(
            record_id=record.record_id,
            critical=False,
            pinned=False,
        )

    pinned_path = store.paths.pinned(record.record_id)
    if store.exists(pinned_path):
        return ExtractionResult(
            record_id=record.record_id,
            critical=True,
            pinned=False,
            matched_tests=tuple(matched),
        )

    finding = build_pinned_finding(record, document, matched, pinned_at=now)
    try:
        write_json(pinned_path, finding.to_dict())
    except OSError as exc:
        raise StoreIOError(
            f"Unable to write pinned finding {pinned_path}: {exc}"
        ) from exc
    logger.info(
        "Pinned critical finding",
        extra={
            "record_id": record.record_id,
            "tier": record.tier.value,
            "path": pinned_path,
        },
    )
    return ExtractionResult(
        record_id=record.record_id,
        critical=True,
        pinned=True,
        matched_tests=tuple(matched),
    )


def extract_critical(
    store: RecordStore,
    record: RecordDescriptor,
    *,
    now: datetime | None = None,
) -> ExtractionResult:
    """Classify a raw or compressed record and pin it when it is critical.

    Unparsable content is logged and treated as non-critical.
    """
    try:
        document = read_document(
            store,
            record.path,
            compressed=record.tier == Tier.COMPRESSED,
        )
    except ParseError as exc:
        logger.warning(
            "Record is not parsable; treating as non-critical",
            extra={
                "record_id": record.record_id,
                "tier": record.tier.value,
                "error_kind": "parse",
                "error_message": str(exc),
            },
        )
        return ExtractionResult(
            record_id=record.record_id,
            critical=False,
            pinned=False,
            error=str(exc),
        )
    return pin_document(store, record, document, now=now)


def load_pinned(store: RecordStore, record_id: str) -> PinnedFinding | None:
    path = store.paths.pinned(record_id)
    if not store.exists(path):
        return None
    payload = read_bytes(store, path)
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"{path} is not valid JSON: {exc}") from exc
    return PinnedFinding.from_dict(data)


def list_pinned(store: RecordStore) -> list[RecordDescriptor]:
    return list(
        scan_records(
            store.paths.pinned_dir,
            PINNED_SUFFIX,
            ArchiveStore.PINNED,
            fs=store.fs,
        )
    )


def purge_pinned(store: RecordStore, record_id: str) -> bool:
    removed = delete_path(store, store.paths.pinned(record_id))
    if removed:
        logger.info(
            "Purged pinned finding",
            extra={"record_id": record_id, "path": store.paths.pinned(record_id)},
        )
    return removed
