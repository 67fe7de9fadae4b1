from strata_core.orchestrator.lock import PassLock, read_lock_info, release_stale
from strata_core.orchestrator.runner import (
    SERVICE_NAME,
    PassReport,
    RecordError,
    predict_for_store,
    prune_reports,
    run_pass,
    write_pass_report,
)

__all__ = [
    "SERVICE_NAME",
    "PassLock",
    "PassReport",
    "RecordError",
    "predict_for_store",
    "prune_reports",
    "read_lock_info",
    "release_stale",
    "run_pass",
    "write_pass_report",
]
