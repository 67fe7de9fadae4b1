from __future__ import annotations

from typing import Any

from strata_core.compaction.io import subtests
from strata_core.records.types import RecordDescriptor
from strata_core.storage.paths import label_from_record_id


def _test_name(test: dict[str, Any]) -> str | None:
    for key in ("name", "test"):
        value = test.get(key)
        if value is not None:
            return str(value)
    return None


def _label(record: RecordDescriptor, document: dict[str, Any]) -> str:
    for key in ("phase", "category"):
        value = document.get(key)
        if value:
            return str(value)
    return label_from_record_id(record.record_id)


def build_summary(
    record: RecordDescriptor,
    document: dict[str, Any] | None,
) -> dict[str, Any]:
    """Reduce a result document to its pass/fail outline.

    Only the timestamp, phase label, counts and `(name, passed, severity)`
    per sub-test survive. A missing document yields a degraded summary.
    """
    if document is None:
        return {
            "record_id": record.record_id,
            "timestamp": record.modified_at.isoformat(),
            "phase": label_from_record_id(record.record_id),
            "total_tests": 0,
            "passed": 0,
            "failed": 0,
            "critical_issues": 0,
            "results": [],
            "degraded": True,
        }

    tests = subtests(document)
    passed = sum(1 for test in tests if test.get("passed") is True)
    critical = sum(
        1
        for test in tests
        if str(test.get("severity") or "").strip().upper() == "CRITICAL"
    )
    timestamp = document.get("timestamp") or record.modified_at.isoformat()
    return {
        "record_id": record.record_id,
        "timestamp": timestamp,
        "phase": _label(record, document),
        "total_tests": len(tests),
        "passed": passed,
        "failed": len(tests) - passed,
        "critical_issues": critical,
        "results": [
            {
                "name": _test_name(test),
                "passed": test.get("passed") is True,
                "severity": test.get("severity"),
            }
            for test in tests
        ],
    }
