from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import fsspec

from strata_core.storage.paths import StorePaths, local_path


@dataclass(frozen=True)
class RecordStore:
    paths: StorePaths
    fs: fsspec.AbstractFileSystem

    @classmethod
    def from_dirs(cls, results_dir: str, archive_dir: str) -> "RecordStore":
        fs = fsspec.filesystem("file")
        return cls(
            paths=StorePaths(
                results_dir=local_path(results_dir),
                archive_dir=local_path(archive_dir),
            ),
            fs=fs,
        )

    def read_bytes(self, path: str) -> bytes:
        with self.fs.open(path, "rb") as handle:
            return handle.read()

    def exists(self, path: str) -> bool:
        return self.fs.exists(path)

    def remove(self, path: str) -> None:
        self.fs.rm(path, recursive=False)

    def makedirs(self, path: str) -> None:
        self.fs.makedirs(path, exist_ok=True)

    def ensure_layout(self) -> None:
        for path in (
            self.paths.results_dir,
            self.paths.compressed_dir,
            self.paths.summary_dir,
            self.paths.pinned_dir,
            self.paths.reports_dir,
        ):
            self.makedirs(path)


def atomic_write_bytes(
    dest_path: str,
    payload: bytes,
    *,
    modified_at: datetime | None = None,
) -> int:
    """Durably write `payload` to `dest_path` and return the on-disk size.

    The bytes land in a temp file next to the destination, are fsynced, then
    renamed over the destination. A reader never observes a partial file.
    """
    dest = Path(dest_path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            delete=False, dir=str(dest.parent), prefix=".", suffix=".tmp"
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
        if modified_at is not None:
            stamp = modified_at.timestamp()
            os.utime(tmp_path, (stamp, stamp))
        os.replace(tmp_path, dest_path)
    except BaseException:
        # A failed write must not leave hidden partial files behind.
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return os.stat(dest_path).st_size
