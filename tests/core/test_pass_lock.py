from __future__ import annotations

import json

import pytest

from strata_core.errors import PassLockedError
from strata_core.orchestrator import PassLock, read_lock_info, release_stale


def test_lock_writes_holder_and_releases(tmp_path):
    lock_path = tmp_path / "archive" / ".strata.lock"

    with PassLock(lock_path, run_id="pass-1") as lock:
        assert lock.held
        info = json.loads(lock_path.read_text(encoding="utf-8"))
        assert info["run_id"] == "pass-1"
        assert info["holder"] == lock.holder

    assert not lock_path.exists()
    assert not lock.held


def test_second_holder_is_refused(tmp_path):
    lock_path = tmp_path / ".strata.lock"
    first = PassLock(lock_path, run_id="pass-1")
    first.acquire()

    with pytest.raises(PassLockedError, match="held by"):
        PassLock(lock_path, run_id="pass-2").acquire()

    first.release()
    assert not lock_path.exists()


def test_lock_released_when_body_raises(tmp_path):
    lock_path = tmp_path / ".strata.lock"

    with pytest.raises(RuntimeError):
        with PassLock(lock_path):
            raise RuntimeError("boom")

    assert not lock_path.exists()


def test_release_stale_returns_previous_holder(tmp_path):
    lock_path = tmp_path / ".strata.lock"
    lock_path.write_text(
        json.dumps({"holder": "123@host", "acquired_at": "2026-01-01T00:00:00"}),
        encoding="utf-8",
    )

    info = release_stale(lock_path)

    assert info["holder"] == "123@host"
    assert not lock_path.exists()
    assert release_stale(lock_path) is None


def test_unreadable_lock_contents_are_tolerated(tmp_path):
    lock_path = tmp_path / ".strata.lock"
    lock_path.write_text("garbage", encoding="utf-8")

    assert read_lock_info(lock_path) == {"holder": "garbage"}
    assert read_lock_info(tmp_path / "missing.lock") == {}
