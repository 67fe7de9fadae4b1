from __future__ import annotations

import gzip
import json
import os
from datetime import timedelta
from pathlib import Path

import pytest

from strata_core.compaction import (
    Transition,
    apply_transition,
    build_summary,
    plan_transition,
)
from strata_core.compaction import pipeline
from strata_core.errors import CompactionError
from strata_core.records import RecordDescriptor, Tier, scan_records
from strata_core.retention import RetentionPolicy
from strata_core.storage.paths import COMPRESSED_SUFFIX, RAW_SUFFIX

POLICY = RetentionPolicy(
    compress_after_days=3,
    raw_retention_days=7,
    compressed_retention_days=30,
    summary_retention_days=90,
)


def _descriptor(tier: Tier, age_days: float, now) -> RecordDescriptor:
    return RecordDescriptor(
        record_id="phase3-2026-01-01T00-00-00Z",
        path="/unused",
        modified_at=now - timedelta(days=age_days),
        size_bytes=100,
        tier=tier,
    )


def _only(store, directory, suffix, tier):
    records = list(scan_records(directory, suffix, tier, fs=store.fs))
    assert len(records) == 1
    return records[0]


@pytest.mark.parametrize(
    ("tier", "age", "compressed_exists", "expected"),
    [
        (Tier.RAW, 1, False, Transition.NONE),
        (Tier.RAW, 3, False, Transition.NONE),
        (Tier.RAW, 5, False, Transition.COMPRESS),
        (Tier.RAW, 5, True, Transition.DELETE_RAW),
        (Tier.RAW, 10, False, Transition.COMPRESS),
        (Tier.RAW, 10, True, Transition.DELETE_RAW),
        (Tier.COMPRESSED, 20, False, Transition.NONE),
        (Tier.COMPRESSED, 40, False, Transition.SUMMARIZE),
        (Tier.SUMMARY, 80, False, Transition.NONE),
        (Tier.SUMMARY, 100, False, Transition.DELETE_SUMMARY),
    ],
)
def test_plan_transition(tier, age, compressed_exists, expected, now):
    record = _descriptor(tier, age, now)
    assert (
        plan_transition(record, POLICY, now, compressed_exists=compressed_exists)
        == expected
    )


def test_uncompressed_raw_can_be_deleted_when_policy_allows(now):
    policy = RetentionPolicy(delete_uncompressed_raw=True)
    record = _descriptor(Tier.RAW, 10, now)

    assert plan_transition(record, policy, now) == Transition.DELETE_RAW
    assert plan_transition(_descriptor(Tier.RAW, 5, now), policy, now) == (
        Transition.COMPRESS
    )


def test_compress_writes_then_deletes_raw(store, write_record):
    raw_path = write_record(
        "phase3-2026-01-10T00-00-00Z",
        age_days=5,
        tests=[{"name": "t", "passed": True, "severity": "LOW", "trace": "x" * 500}],
    )
    original = raw_path.read_bytes()
    record = _only(store, store.paths.results_dir, RAW_SUFFIX, Tier.RAW)

    result = apply_transition(store, record, Transition.COMPRESS)

    compressed_path = Path(store.paths.compressed(record.record_id))
    assert not raw_path.exists()
    assert gzip.decompress(compressed_path.read_bytes()) == original
    assert result.output_bytes == os.path.getsize(compressed_path)
    assert result.bytes_freed == record.size_bytes - result.output_bytes
    assert abs(os.path.getmtime(compressed_path) - record.modified_at.timestamp()) < 1


def test_failed_compression_keeps_raw(store, write_record, monkeypatch):
    raw_path = write_record("phase3-2026-01-10T00-00-00Z", age_days=5)
    record = _only(store, store.paths.results_dir, RAW_SUFFIX, Tier.RAW)

    def disk_full(*_args, **_kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(pipeline, "atomic_write_bytes", disk_full)

    with pytest.raises(CompactionError):
        apply_transition(store, record, Transition.COMPRESS)

    assert raw_path.exists()
    assert not Path(store.paths.compressed(record.record_id)).exists()


def test_summarize_reduces_compressed_record(store, write_compressed):
    document = {
        "timestamp": "2025-11-01T00:00:00Z",
        "phase": "phase6",
        "tests": [
            {"name": "a", "passed": True, "severity": "LOW", "details": "x" * 200},
            {"name": "b", "passed": False, "severity": "CRITICAL", "trace": "..."},
            {"test": "c", "passed": False, "severity": "HIGH"},
        ],
    }
    compressed_path = write_compressed(
        "phase6-2025-11-01T00-00-00Z", age_days=40, document=document
    )
    record = _only(
        store, store.paths.compressed_dir, COMPRESSED_SUFFIX, Tier.COMPRESSED
    )

    result = apply_transition(store, record, Transition.SUMMARIZE)

    assert not compressed_path.exists()
    summary_path = Path(store.paths.summary(record.record_id))
    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert summary["phase"] == "phase6"
    assert summary["timestamp"] == "2025-11-01T00:00:00Z"
    assert summary["total_tests"] == 3
    assert summary["passed"] == 1
    assert summary["failed"] == 2
    assert summary["critical_issues"] == 1
    assert summary["results"] == [
        {"name": "a", "passed": True, "severity": "LOW"},
        {"name": "b", "passed": False, "severity": "CRITICAL"},
        {"name": "c", "passed": False, "severity": "HIGH"},
    ]
    assert result.degraded is False
    assert abs(os.path.getmtime(summary_path) - record.modified_at.timestamp()) < 1


def test_corrupt_compressed_record_gets_degraded_summary(store, write_compressed):
    write_compressed("phase7-2025-11-01T00-00-00Z", age_days=40, payload=b"garbage")
    record = _only(
        store, store.paths.compressed_dir, COMPRESSED_SUFFIX, Tier.COMPRESSED
    )

    result = apply_transition(store, record, Transition.SUMMARIZE)

    assert result.degraded is True
    summary = json.loads(
        Path(store.paths.summary(record.record_id)).read_text(encoding="utf-8")
    )
    assert summary["degraded"] is True
    assert summary["phase"] == "phase7"
    assert summary["total_tests"] == 0


def test_existing_summary_is_not_rewritten(store, write_compressed):
    compressed_path = write_compressed("phase2-2025-11-01T00-00-00Z", age_days=40)
    summary_path = Path(store.paths.summary("phase2-2025-11-01T00-00-00Z"))
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    summary_path.write_text('{"kept": true}', encoding="utf-8")
    record = _only(
        store, store.paths.compressed_dir, COMPRESSED_SUFFIX, Tier.COMPRESSED
    )

    result = apply_transition(store, record, Transition.SUMMARIZE)

    assert result.reused_output is True
    assert summary_path.read_text(encoding="utf-8") == '{"kept": true}'
    assert not compressed_path.exists()


def test_build_summary_falls_back_to_file_label(now):
    record = _descriptor(Tier.COMPRESSED, 40, now)

    summary = build_summary(record, {"tests": [{"name": "x", "passed": True}]})

    assert summary["phase"] == "phase3"
    assert summary["timestamp"] == record.modified_at.isoformat()
    assert summary["results"] == [{"name": "x", "passed": True, "severity": None}]
