from __future__ import annotations

import gzip
import json
import zlib
from datetime import datetime
from typing import Any

from strata_core.errors import ParseError, StoreIOError
from strata_core.storage.object_store import RecordStore, atomic_write_bytes


def gzip_bytes(payload: bytes) -> bytes:
    return gzip.compress(payload, compresslevel=9)


def gunzip_bytes(payload: bytes, *, source: str) -> bytes:
    try:
        return gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as exc:
        raise ParseError(f"{source} is not valid gzip data: {exc}") from exc


def parse_document(payload: bytes, *, source: str) -> dict[str, Any]:
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"{source} must contain a JSON object")
    return data


def read_bytes(store: RecordStore, path: str) -> bytes:
    try:
        return store.read_bytes(path)
    except OSError as exc:
        raise StoreIOError(f"Unable to read {path}: {exc}") from exc


def read_document(
    store: RecordStore,
    path: str,
    *,
    compressed: bool = False,
) -> dict[str, Any]:
    payload = read_bytes(store, path)
    if compressed:
        payload = gunzip_bytes(payload, source=path)
    return parse_document(payload, source=path)


def subtests(document: dict[str, Any]) -> list[dict[str, Any]]:
    tests = document.get("tests")
    if not isinstance(tests, list):
        return []
    return [item for item in tests if isinstance(item, dict)]


def write_json(
    dest_path: str,
    payload: dict[str, Any],
    *,
    modified_at: datetime | None = None,
) -> int:
    data = json.dumps(payload, indent=2, sort_keys=True).encode("utf-8")
    return atomic_write_bytes(dest_path, data, modified_at=modified_at)


def delete_path(store: RecordStore, path: str) -> bool:
    try:
        store.remove(path)
    except FileNotFoundError:
        return False
    return True
