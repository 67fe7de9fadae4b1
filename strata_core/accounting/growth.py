from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from strata_core.records.types import RecordDescriptor

STATUS_OK = "ok"
STATUS_INSUFFICIENT_DATA = "insufficient_data"
STATUS_NO_GROWTH = "no_growth"

DEFAULT_SAMPLE_SIZE = 100

_ASSUMPTIONS = (
    "Linear extrapolation over the most recent raw records.",
    "Rough estimate, not a guarantee; cleanup passes and ingestion bursts "
    "change the outcome.",
)


@dataclass(frozen=True)
class GrowthPrediction:
    status: str
    sample_count: int
    span_days: float | None = None
    records_per_day: float | None = None
    bytes_per_day: float | None = None
    remaining_bytes: int | None = None
    days_until_full: float | None = None
    estimated_full_at: str | None = None
    assumptions: tuple[str, ...] = field(default=_ASSUMPTIONS)

    @property
    def has_prediction(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["assumptions"] = list(self.assumptions)
        return payload


def predict_growth(
    records: Iterable[RecordDescriptor],
    *,
    budget_bytes: int,
    current_usage_bytes: int,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    now: datetime | None = None,
) -> GrowthPrediction:
    """Forecast days until the budget is exhausted at the recent ingest rate."""
    ordered = sorted(records, key=lambda record: record.modified_at)
    sample = ordered[-sample_size:] if sample_size > 0 else []
    if len(sample) < 2:
        return GrowthPrediction(
            status=STATUS_INSUFFICIENT_DATA,
            sample_count=len(sample),
        )

    span_days = (
        sample[-1].modified_at - sample[0].modified_at
    ).total_seconds() / 86400.0
    if span_days <= 0:
        return GrowthPrediction(
            status=STATUS_INSUFFICIENT_DATA,
            sample_count=len(sample),
            span_days=0.0,
        )

    records_per_day = len(sample) / span_days
    average_size = sum(record.size_bytes for record in sample) / len(sample)
    bytes_per_day = average_size * records_per_day
    remaining = budget_bytes - current_usage_bytes
    if bytes_per_day <= 0:
        return GrowthPrediction(
            status=STATUS_NO_GROWTH,
            sample_count=len(sample),
            span_days=round(span_days, 4),
            records_per_day=round(records_per_day, 4),
            bytes_per_day=0.0,
            remaining_bytes=remaining,
        )

    days_until_full = max(0.0, remaining / bytes_per_day)
    reference = now or datetime.now(timezone.utc)
    try:
        estimated_full_at = (reference + timedelta(days=days_until_full)).isoformat()
    except OverflowError:
        # Past datetime.max; the day count alone is still meaningful.
        estimated_full_at = None
    return GrowthPrediction(
        status=STATUS_OK,
        sample_count=len(sample),
        span_days=round(span_days, 4),
        records_per_day=round(records_per_day, 4),
        bytes_per_day=round(bytes_per_day, 2),
        remaining_bytes=remaining,
        days_until_full=round(days_until_full, 2),
        estimated_full_at=estimated_full_at,
    )
