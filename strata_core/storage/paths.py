from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

RAW_SUFFIX = ".json"
COMPRESSED_SUFFIX = ".json.gz"
SUMMARY_SUFFIX = "-summary.json"
PINNED_SUFFIX = ".json"
REPORT_SUFFIX = ".json"
LOCK_FILENAME = ".strata.lock"

COMPRESSED_DIRNAME = "compressed"
SUMMARY_DIRNAME = "summaries"
PINNED_DIRNAME = "critical"
REPORTS_DIRNAME = "reports"


def _strip_slashes(value: str) -> str:
    return value.strip("/")


def local_path(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return parsed.path
    return uri


def join_uri(base_uri: str, *parts: str) -> str:
    safe_parts = [_strip_slashes(part) for part in parts if part]
    return str(Path(local_path(base_uri)).joinpath(*safe_parts))


def record_id_from_name(name: str, suffix: str) -> str:
    base = name.rsplit("/", 1)[-1]
    if suffix and base.endswith(suffix):
        return base[: -len(suffix)]
    return base


def label_from_record_id(record_id: str) -> str:
    """Return the producer label of a `<label>-<ISO8601 timestamp>` record id."""
    for idx, char in enumerate(record_id):
        if char == "-" and record_id[idx + 1 : idx + 5].isdigit():
            tail = record_id[idx + 1 :]
            if len(tail) >= 10 and tail[4] == "-":
                return record_id[:idx] or record_id
    return record_id


@dataclass(frozen=True)
class StorePaths:
    results_dir: str
    archive_dir: str

    @property
    def compressed_dir(self) -> str:
        return join_uri(self.archive_dir, COMPRESSED_DIRNAME)

    @property
    def summary_dir(self) -> str:
        return join_uri(self.archive_dir, SUMMARY_DIRNAME)

    @property
    def pinned_dir(self) -> str:
        return join_uri(self.archive_dir, PINNED_DIRNAME)

    @property
    def reports_dir(self) -> str:
        return join_uri(self.archive_dir, REPORTS_DIRNAME)

    @property
    def lock_path(self) -> str:
        return join_uri(self.archive_dir, LOCK_FILENAME)

    def raw(self, record_id: str) -> str:
        return join_uri(self.results_dir, f"{record_id}{RAW_SUFFIX}")

    def compressed(self, record_id: str) -> str:
        return join_uri(self.compressed_dir, f"{record_id}{COMPRESSED_SUFFIX}")

    def summary(self, record_id: str) -> str:
        return join_uri(self.summary_dir, f"{record_id}{SUMMARY_SUFFIX}")

    def pinned(self, record_id: str) -> str:
        return join_uri(self.pinned_dir, f"{record_id}{PINNED_SUFFIX}")

    def report(self, run_id: str) -> str:
        return join_uri(self.reports_dir, f"{run_id}.json")
