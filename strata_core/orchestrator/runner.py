from __future__ import annotations

import time
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any

from strata_core.accounting import (
    DiskState,
    GrowthPrediction,
    UsageSnapshot,
    measure_usage,
    predict_growth,
)
from strata_core.compaction import (
    Transition,
    TransitionResult,
    apply_transition,
    plan_transition,
)
from strata_core.compaction.io import delete_path, write_json
from strata_core.errors import CompactionError, StoreIOError
from strata_core.logging import get_logger
from strata_core.orchestrator.lock import PassLock
from strata_core.records import (
    ArchiveStore,
    RecordDescriptor,
    Tier,
    extract_critical,
    scan_records,
)
from strata_core.retention import RetentionPolicy
from strata_core.storage.object_store import RecordStore
from strata_core.storage.paths import (
    COMPRESSED_SUFFIX,
    RAW_SUFFIX,
    REPORT_SUFFIX,
    SUMMARY_SUFFIX,
)

SERVICE_NAME = "strata-retention"
logger = get_logger(__name__)

ERROR_IO = "io"
ERROR_PARSE = "parse"
ERROR_COMPACTION = "compaction"


@dataclass(frozen=True)
class RecordError:
    record_id: str
    tier: str
    kind: str
    message: str


@dataclass(frozen=True)
class PassReport:
    run_id: str
    started_at: str
    completed_at: str
    duration_seconds: float
    counts: dict[str, int]
    bytes_freed: int
    usage_before: UsageSnapshot
    usage_after: UsageSnapshot
    prediction: GrowthPrediction
    errors: tuple[RecordError, ...]
    results: tuple[TransitionResult, ...]
    policy: RetentionPolicy
    report_uri: str | None = None

    @property
    def transitions(self) -> int:
        return len(self.results)

    @property
    def errored(self) -> int:
        return len({(error.tier, error.record_id) for error in self.errors})

    @property
    def disk_state(self) -> DiskState:
        return self.usage_after.state

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_seconds": self.duration_seconds,
            "counts": dict(self.counts),
            "transitions": self.transitions,
            "errored": self.errored,
            "bytes_freed": self.bytes_freed,
            "usage_before": self.usage_before.to_dict(),
            "usage_after": self.usage_after.to_dict(),
            "prediction": self.prediction.to_dict(),
            "errors": [asdict(error) for error in self.errors],
            "results": [
                {
                    "record_id": result.record_id,
                    "transition": result.transition.value,
                    "target_tier": (
                        result.transition.target_tier.value
                        if result.transition.target_tier
                        else None
                    ),
                    "source_tier": result.source_tier.value,
                    "source_bytes": result.source_bytes,
                    "output_bytes": result.output_bytes,
                    "reused_output": result.reused_output,
                    "degraded": result.degraded,
                }
                for result in self.results
            ],
            "policy": self.policy.to_dict(),
            "report_uri": self.report_uri,
        }


class _PassState:
    def __init__(self) -> None:
        self.counts: dict[str, int] = defaultdict(int)
        self.results: list[TransitionResult] = []
        self.errors: list[RecordError] = []
        self._parse_errors: set[tuple[str, str]] = set()

    def record_error(self, record: RecordDescriptor, kind: str, message: str) -> None:
        if kind == ERROR_PARSE:
            key = (record.tier.value, record.record_id)
            if key in self._parse_errors:
                return
            self._parse_errors.add(key)
        self.errors.append(
            RecordError(
                record_id=record.record_id,
                tier=record.tier.value,
                kind=kind,
                message=message,
            )
        )
        logger.warning(
            "Record error",
            extra={
                "record_id": record.record_id,
                "tier": record.tier.value,
                "error_kind": kind,
                "error_message": message,
            },
        )


_TRANSITION_COUNTERS = {
    Transition.COMPRESS: "compressed",
    Transition.SUMMARIZE: "summarized",
    Transition.DELETE_RAW: "deleted",
    Transition.DELETE_SUMMARY: "deleted",
}


def _apply(
    store: RecordStore,
    record: RecordDescriptor,
    transition: Transition,
    state: _PassState,
) -> None:
    if transition == Transition.NONE:
        state.counts["unchanged"] += 1
        return
    try:
        result = apply_transition(store, record, transition)
    except (CompactionError, StoreIOError) as exc:
        state.record_error(record, ERROR_COMPACTION, str(exc))
        return
    if result.parse_error:
        state.record_error(record, ERROR_PARSE, result.parse_error)
    state.results.append(result)
    state.counts[_TRANSITION_COUNTERS[transition]] += 1
    logger.info(
        "Applied transition",
        extra={
            "record_id": record.record_id,
            "tier": record.tier.value,
            "transition": transition.value,
            "bytes_in": result.source_bytes,
            "bytes_out": result.output_bytes,
        },
    )


def _extract(
    store: RecordStore,
    record: RecordDescriptor,
    state: _PassState,
    now: datetime,
) -> bool:
    try:
        extraction = extract_critical(store, record, now=now)
    except StoreIOError as exc:
        state.record_error(record, ERROR_IO, str(exc))
        return False
    if extraction.error:
        state.record_error(record, ERROR_PARSE, extraction.error)
    if extraction.critical:
        state.counts["critical"] += 1
    if extraction.pinned:
        state.counts["pinned"] += 1
    return True


def _process_raw(
    store: RecordStore,
    record: RecordDescriptor,
    policy: RetentionPolicy,
    now: datetime,
    compressed_ids: set[str],
    state: _PassState,
) -> None:
    if not _extract(store, record, state, now):
        return
    transition = plan_transition(
        record,
        policy,
        now,
        compressed_exists=record.record_id in compressed_ids,
    )
    _apply(store, record, transition, state)


def _process_compressed(
    store: RecordStore,
    record: RecordDescriptor,
    policy: RetentionPolicy,
    now: datetime,
    state: _PassState,
) -> None:
    transition = plan_transition(record, policy, now)
    if transition == Transition.SUMMARIZE and not store.exists(
        store.paths.pinned(record.record_id)
    ):
        # Last chance to pin before the full payload is reduced.
        if not _extract(store, record, state, now):
            return
    _apply(store, record, transition, state)


def _scan_tier(
    store: RecordStore,
    directory: str,
    suffix: str,
    tier: Tier,
) -> list[RecordDescriptor]:
    return list(scan_records(directory, suffix, tier, fs=store.fs))


def write_pass_report(store: RecordStore, report: PassReport) -> str:
    dest_uri = store.paths.report(report.run_id)
    payload = report.to_dict()
    payload["report_uri"] = dest_uri
    payload["written_at"] = datetime.now(timezone.utc).isoformat()
    write_json(dest_uri, payload)
    return dest_uri


def prune_reports(
    store: RecordStore,
    policy: RetentionPolicy,
    now: datetime,
) -> int:
    """Delete pass reports older than the summary retention window."""
    pruned = 0
    for report in scan_records(
        store.paths.reports_dir, REPORT_SUFFIX, ArchiveStore.REPORTS, fs=store.fs
    ):
        if report.age_days(now) <= policy.summary_retention_days:
            continue
        try:
            removed = delete_path(store, report.path)
        except OSError as exc:
            logger.warning(
                "Unable to prune pass report",
                extra={"path": report.path, "error_message": str(exc)},
            )
            continue
        if removed:
            pruned += 1
    return pruned


def predict_for_store(
    store: RecordStore,
    policy: RetentionPolicy,
    *,
    sample_size: int = 100,
    now: datetime | None = None,
    usage: UsageSnapshot | None = None,
) -> GrowthPrediction:
    usage = usage or measure_usage(store, policy)
    raw_records = scan_records(
        store.paths.results_dir, RAW_SUFFIX, Tier.RAW, fs=store.fs
    )
    return predict_growth(
        raw_records,
        budget_bytes=policy.max_budget_bytes,
        current_usage_bytes=usage.budget_bytes_used,
        sample_size=sample_size,
        now=now,
    )


def run_pass(
    store: RecordStore,
    policy: RetentionPolicy,
    *,
    now: datetime | None = None,
    sample_size: int = 100,
    write_report: bool = True,
) -> PassReport:
    """Run one retention pass over every tier of `store`.

    Per-record failures are collected in the report and never stop the pass.
    A held lock, an invalid policy, or an unreadable tier directory propagate.
    """
    policy.validate()
    started = datetime.now(timezone.utc)
    now = now or started
    start_time = time.monotonic()
    run_id = f"pass-{started.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4()}"
    state = _PassState()

    with PassLock(store.paths.lock_path, run_id=run_id):
        store.ensure_layout()
        usage_before = measure_usage(store, policy)

        paths = store.paths
        raw_records = _scan_tier(store, paths.results_dir, RAW_SUFFIX, Tier.RAW)
        compressed_records = _scan_tier(
            store, paths.compressed_dir, COMPRESSED_SUFFIX, Tier.COMPRESSED
        )
        summary_records = _scan_tier(
            store, paths.summary_dir, SUMMARY_SUFFIX, Tier.SUMMARY
        )
        compressed_ids = {record.record_id for record in compressed_records}

        for record in raw_records:
            state.counts["processed"] += 1
            _process_raw(store, record, policy, now, compressed_ids, state)
        for record in compressed_records:
            state.counts["processed"] += 1
            _process_compressed(store, record, policy, now, state)
        for record in summary_records:
            state.counts["processed"] += 1
            _apply(store, record, plan_transition(record, policy, now), state)
        state.counts["reports_pruned"] = prune_reports(store, policy, now)

        usage_after = measure_usage(store, policy)
        prediction = predict_for_store(
            store,
            policy,
            sample_size=sample_size,
            now=now,
            usage=usage_after,
        )

        completed = datetime.now(timezone.utc)
        counts = {
            key: state.counts.get(key, 0)
            for key in (
                "processed",
                "compressed",
                "summarized",
                "deleted",
                "unchanged",
                "critical",
                "pinned",
                "reports_pruned",
            )
        }
        report = PassReport(
            run_id=run_id,
            started_at=started.isoformat(),
            completed_at=completed.isoformat(),
            duration_seconds=time.monotonic() - start_time,
            counts=counts,
            bytes_freed=sum(result.bytes_freed for result in state.results),
            usage_before=usage_before,
            usage_after=usage_after,
            prediction=prediction,
            errors=tuple(state.errors),
            results=tuple(state.results),
            policy=policy,
        )
        if write_report:
            report_uri = write_pass_report(store, report)
            report = replace(report, report_uri=report_uri)

    logger.info(
        "Retention pass completed",
        extra={
            "run_id": report.run_id,
            "transitions": report.transitions,
            "errored": report.errored,
            "pinned": report.counts["pinned"],
            "state": report.disk_state.value,
            "report_uri": report.report_uri,
            "duration_ms": int(report.duration_seconds * 1000),
        },
    )
    return report
