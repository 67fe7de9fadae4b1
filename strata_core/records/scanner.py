from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterator

import fsspec

from strata_core.errors import StoreIOError
from strata_core.logging import get_logger
from strata_core.records.types import RecordDescriptor, RecordLocation
from strata_core.storage.paths import record_id_from_name

logger = get_logger(__name__)


def _modified_at(info: dict[str, Any]) -> datetime | None:
    updated = info.get("mtime")
    if updated is None:
        updated = info.get("updated")
    if isinstance(updated, datetime):
        return updated.astimezone(timezone.utc)
    if isinstance(updated, (int, float)):
        return datetime.fromtimestamp(updated, tz=timezone.utc)
    if isinstance(updated, str):
        try:
            return datetime.fromisoformat(updated.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _list_entries(
    fs: fsspec.AbstractFileSystem, directory: str
) -> list[dict[str, Any]]:
    try:
        info = fs.info(directory)
        if info.get("type") != "directory":
            raise StoreIOError(f"{directory} is not a directory")
        entries = fs.ls(directory, detail=True)
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise StoreIOError(f"Unable to list {directory}: {exc}") from exc
    return sorted(entries, key=lambda entry: str(entry.get("name", "")))


def scan_records(
    directory: str,
    suffix: str,
    tier: RecordLocation,
    *,
    fs: fsspec.AbstractFileSystem | None = None,
) -> Iterator[RecordDescriptor]:
    """Yield descriptors for files in `directory` ending with `suffix`.

    Nothing is listed until the generator is first advanced, and every call
    lists the directory again. A missing directory yields nothing.
    """
    fs = fs or fsspec.filesystem("file")
    for entry in _list_entries(fs, directory):
        if entry.get("type") != "file":
            continue
        name = str(entry.get("name", ""))
        base = name.rsplit("/", 1)[-1]
        if base.startswith(".") or not base.endswith(suffix):
            continue
        modified_at = _modified_at(entry)
        if modified_at is None:
            logger.warning(
                "Skipping record without modification time",
                extra={"path": name, "tier": tier.value},
            )
            continue
        yield RecordDescriptor(
            record_id=record_id_from_name(base, suffix),
            path=name,
            modified_at=modified_at,
            size_bytes=int(entry.get("size") or 0),
            tier=tier,
        )
