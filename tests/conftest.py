import gzip
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from strata_core.storage import RecordStore

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _strata_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in list(os.environ):
        if name.startswith("STRATA_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("STRATA_ENV_FILE", str(tmp_path / "missing.env"))

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore.from_dirs(
        str(tmp_path / "results"),
        str(tmp_path / "archive"),
    )


def _set_age(path: Path, age_days: float, now: datetime) -> None:
    stamp = (now - timedelta(days=age_days)).timestamp()
    os.utime(path, (stamp, stamp))


@pytest.fixture
def age_file():
    def _age(path, age_days: float, now: datetime = NOW) -> None:
        _set_age(Path(path), age_days, now)

    return _age


@pytest.fixture
def write_record(store: RecordStore):
    def _write(
        record_id: str,
        *,
        age_days: float,
        tests: list[dict] | None = None,
        document: dict | None = None,
        payload: bytes | None = None,
        now: datetime = NOW,
    ) -> Path:
        path = Path(store.paths.raw(record_id))
        path.parent.mkdir(parents=True, exist_ok=True)
        if payload is None:
            if document is None:
                document = {
                    "timestamp": (now - timedelta(days=age_days)).isoformat(),
                    "phase": record_id.split("-")[0],
                    "tests": tests if tests is not None else [],
                }
            payload = json.dumps(document).encode("utf-8")
        path.write_bytes(payload)
        _set_age(path, age_days, now)
        return path

    return _write


@pytest.fixture
def write_compressed(store: RecordStore):
    def _write(
        record_id: str,
        *,
        age_days: float,
        document: dict | None = None,
        payload: bytes | None = None,
        now: datetime = NOW,
    ) -> Path:
        path = Path(store.paths.compressed(record_id))
        path.parent.mkdir(parents=True, exist_ok=True)
        if payload is None:
            raw = json.dumps(document or {"tests": []}).encode("utf-8")
            payload = gzip.compress(raw)
        path.write_bytes(payload)
        _set_age(path, age_days, now)
        return path

    return _write
