from strata_core.accounting.growth import (
    STATUS_INSUFFICIENT_DATA,
    STATUS_NO_GROWTH,
    STATUS_OK,
    GrowthPrediction,
    predict_growth,
)
from strata_core.accounting.usage import (
    DiskState,
    TierUsage,
    UsageSnapshot,
    classify_bytes,
    measure_usage,
)

__all__ = [
    "STATUS_INSUFFICIENT_DATA",
    "STATUS_NO_GROWTH",
    "STATUS_OK",
    "DiskState",
    "GrowthPrediction",
    "TierUsage",
    "UsageSnapshot",
    "classify_bytes",
    "measure_usage",
    "predict_growth",
]
