from __future__ import annotations

from datetime import datetime

from strata_core.compaction.io import (
    delete_path,
    gunzip_bytes,
    gzip_bytes,
    parse_document,
    write_json,
)
from strata_core.compaction.summary import build_summary
from strata_core.compaction.types import Transition, TransitionResult
from strata_core.errors import CompactionError, ParseError
from strata_core.logging import get_logger
from strata_core.records.types import RecordDescriptor, Tier
from strata_core.retention import RetentionPolicy
from strata_core.storage.object_store import RecordStore, atomic_write_bytes

logger = get_logger(__name__)

# Used only for progress messages; accounting always measures the written file.
ESTIMATED_COMPRESSION_RATIO = 0.7


def plan_transition(
    record: RecordDescriptor,
    policy: RetentionPolicy,
    now: datetime,
    *,
    compressed_exists: bool = False,
) -> Transition:
    """Pick the single transition for `record` this pass; first match wins."""
    age = record.age_days(now)
    if record.tier == Tier.SUMMARY:
        if age > policy.summary_retention_days:
            return Transition.DELETE_SUMMARY
        return Transition.NONE
    if record.tier == Tier.COMPRESSED:
        if age > policy.compressed_retention_days:
            return Transition.SUMMARIZE
        return Transition.NONE
    if record.tier != Tier.RAW:
        return Transition.NONE
    if age > policy.raw_retention_days:
        if compressed_exists or policy.delete_uncompressed_raw:
            return Transition.DELETE_RAW
        return Transition.COMPRESS
    if age > policy.compress_after_days:
        if compressed_exists:
            return Transition.DELETE_RAW
        return Transition.COMPRESS
    return Transition.NONE


def _remove_source(store: RecordStore, record: RecordDescriptor) -> None:
    try:
        delete_path(store, record.path)
    except OSError as exc:
        raise CompactionError(
            f"Unable to delete {record.tier.value} record {record.path}: {exc}"
        ) from exc


def _compress(store: RecordStore, record: RecordDescriptor) -> TransitionResult:
    dest = store.paths.compressed(record.record_id)
    logger.info(
        "Compressing record",
        extra={
            "record_id": record.record_id,
            "bytes_in": record.size_bytes,
            "estimated_bytes_saved": int(
                record.size_bytes * ESTIMATED_COMPRESSION_RATIO
            ),
        },
    )
    try:
        payload = store.read_bytes(record.path)
    except OSError as exc:
        raise CompactionError(f"Unable to read {record.path}: {exc}") from exc
    try:
        output_bytes = atomic_write_bytes(
            dest,
            gzip_bytes(payload),
            modified_at=record.modified_at,
        )
    except OSError as exc:
        raise CompactionError(f"Unable to write {dest}: {exc}") from exc

    _remove_source(store, record)
    return TransitionResult(
        record_id=record.record_id,
        transition=Transition.COMPRESS,
        source_tier=record.tier,
        source_bytes=record.size_bytes,
        output_bytes=output_bytes,
        output_path=dest,
    )


def _summarize(store: RecordStore, record: RecordDescriptor) -> TransitionResult:
    dest = store.paths.summary(record.record_id)
    if store.exists(dest):
        _remove_source(store, record)
        return TransitionResult(
            record_id=record.record_id,
            transition=Transition.SUMMARIZE,
            source_tier=record.tier,
            source_bytes=record.size_bytes,
            output_path=dest,
            reused_output=True,
        )

    try:
        payload = store.read_bytes(record.path)
    except OSError as exc:
        raise CompactionError(f"Unable to read {record.path}: {exc}") from exc

    parse_error = None
    try:
        document = parse_document(
            gunzip_bytes(payload, source=record.path),
            source=record.path,
        )
    except ParseError as exc:
        parse_error = str(exc)
        document = None
        logger.warning(
            "Compressed record is not parsable; writing degraded summary",
            extra={
                "record_id": record.record_id,
                "error_kind": "parse",
                "error_message": parse_error,
            },
        )

    try:
        output_bytes = write_json(
            dest,
            build_summary(record, document),
            modified_at=record.modified_at,
        )
    except OSError as exc:
        raise CompactionError(f"Unable to write {dest}: {exc}") from exc

    _remove_source(store, record)
    return TransitionResult(
        record_id=record.record_id,
        transition=Transition.SUMMARIZE,
        source_tier=record.tier,
        source_bytes=record.size_bytes,
        output_bytes=output_bytes,
        output_path=dest,
        parse_error=parse_error,
    )


def _delete(
    store: RecordStore,
    record: RecordDescriptor,
    transition: Transition,
) -> TransitionResult:
    _remove_source(store, record)
    reused = (
        transition == Transition.DELETE_RAW
        and store.exists(store.paths.compressed(record.record_id))
    )
    return TransitionResult(
        record_id=record.record_id,
        transition=transition,
        source_tier=record.tier,
        source_bytes=record.size_bytes,
        reused_output=reused,
    )


def apply_transition(
    store: RecordStore,
    record: RecordDescriptor,
    transition: Transition,
) -> TransitionResult:
    """Execute `transition` for `record`.

    The destination is durably written before the source is removed. On
    failure a `CompactionError` is raised and the source stays in its tier.
    """
    if transition == Transition.NONE:
        return TransitionResult(
            record_id=record.record_id,
            transition=transition,
            source_tier=record.tier,
            source_bytes=0,
        )
    if transition == Transition.COMPRESS:
        return _compress(store, record)
    if transition == Transition.SUMMARIZE:
        return _summarize(store, record)
    return _delete(store, record, transition)
