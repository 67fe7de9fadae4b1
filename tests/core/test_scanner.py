from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

from strata_core.errors import StoreIOError
from strata_core.records import Tier, scan_records
from strata_core.storage.paths import (
    COMPRESSED_SUFFIX,
    RAW_SUFFIX,
    label_from_record_id,
    record_id_from_name,
)


def test_missing_directory_yields_nothing(tmp_path):
    assert list(scan_records(str(tmp_path / "absent"), RAW_SUFFIX, Tier.RAW)) == []


def test_scan_filters_and_orders_records(tmp_path, age_file, now):
    results = tmp_path / "results"
    results.mkdir()
    (results / "phase4-2026-01-02T00-00-00Z.json").write_text("{}", encoding="utf-8")
    (results / "phase3-2026-01-01T00-00-00Z.json").write_text("{}", encoding="utf-8")
    (results / "notes.txt").write_text("skip", encoding="utf-8")
    (results / ".partial.json").write_text("{}", encoding="utf-8")
    (results / "nested").mkdir()
    age_file(results / "phase3-2026-01-01T00-00-00Z.json", 4)

    records = list(scan_records(str(results), RAW_SUFFIX, Tier.RAW))

    assert [record.record_id for record in records] == [
        "phase3-2026-01-01T00-00-00Z",
        "phase4-2026-01-02T00-00-00Z",
    ]
    first = records[0]
    assert first.tier == Tier.RAW
    assert first.size_bytes == 2
    assert abs(first.modified_at - (now - timedelta(days=4))) < timedelta(seconds=1)
    assert first.age_days(now) == pytest.approx(4, abs=1e-3)


def test_scan_is_lazy_and_restartable(tmp_path):
    not_a_dir = tmp_path / "file.json"
    not_a_dir.write_text("{}", encoding="utf-8")

    records = scan_records(str(not_a_dir), RAW_SUFFIX, Tier.RAW)
    with pytest.raises(StoreIOError):
        list(records)

    directory = tmp_path / "compressed"
    directory.mkdir()
    (directory / "a.json.gz").write_bytes(b"x")
    first = list(scan_records(str(directory), COMPRESSED_SUFFIX, Tier.COMPRESSED))
    second = list(scan_records(str(directory), COMPRESSED_SUFFIX, Tier.COMPRESSED))
    assert first == second
    assert first[0].record_id == "a"


def test_record_names():
    assert record_id_from_name("/x/run-1.json.gz", ".json.gz") == "run-1"
    assert (
        label_from_record_id("phase3-chaincode-2025-01-02T10:00:00.000Z")
        == "phase3-chaincode"
    )
    assert label_from_record_id("adhoc") == "adhoc"


def test_epoch_mtime_is_a_real_timestamp(tmp_path):
    results = tmp_path / "results"
    results.mkdir()
    path = results / "phase1-1970-01-01T00-00-00Z.json"
    path.write_text("{}", encoding="utf-8")
    os.utime(path, (0, 0))

    [record] = scan_records(str(results), RAW_SUFFIX, Tier.RAW)

    assert record.modified_at == datetime(1970, 1, 1, tzinfo=timezone.utc)
