from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

from strata_core.compaction import Transition, apply_transition
from strata_core.errors import CompactionError
from strata_core.records import Tier, scan_records
from strata_core.storage import atomic_write_bytes
from strata_core.storage import object_store
from strata_core.storage.paths import RAW_SUFFIX


def _disk_full(*_args, **_kwargs):
    raise OSError(28, "No space left on device")


def test_atomic_write_sets_mtime_and_returns_size(tmp_path):
    dest = tmp_path / "out" / "record.json.gz"
    stamp = datetime(2025, 12, 1, tzinfo=timezone.utc)

    size = atomic_write_bytes(str(dest), b"payload", modified_at=stamp)

    assert size == 7
    assert dest.read_bytes() == b"payload"
    assert dest.stat().st_mtime == pytest.approx(stamp.timestamp())
    assert os.listdir(dest.parent) == ["record.json.gz"]


def test_failed_fsync_leaves_no_temp_file(tmp_path, monkeypatch):
    dest = tmp_path / "compressed" / "record.json.gz"
    monkeypatch.setattr(object_store.os, "fsync", _disk_full)

    with pytest.raises(OSError):
        atomic_write_bytes(str(dest), b"payload")

    assert os.listdir(dest.parent) == []


def test_failed_rename_leaves_no_temp_file(tmp_path, monkeypatch):
    dest = tmp_path / "summaries" / "record-summary.json"
    monkeypatch.setattr(object_store.os, "replace", _disk_full)

    with pytest.raises(OSError):
        atomic_write_bytes(str(dest), b"{}")

    assert os.listdir(dest.parent) == []


def test_disk_full_compression_keeps_raw_and_no_partial_output(
    store, write_record, monkeypatch
):
    raw_path = write_record("phase3-2026-01-10T00-00-00Z", age_days=5)
    [record] = scan_records(
        store.paths.results_dir, RAW_SUFFIX, Tier.RAW, fs=store.fs
    )
    monkeypatch.setattr(object_store.os, "fsync", _disk_full)

    with pytest.raises(CompactionError):
        apply_transition(store, record, Transition.COMPRESS)

    assert raw_path.exists()
    assert os.listdir(store.paths.compressed_dir) == []
