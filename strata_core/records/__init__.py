from strata_core.records.critical import (
    critical_tests,
    extract_critical,
    is_critical_test,
    list_pinned,
    load_pinned,
    purge_pinned,
)
from strata_core.records.scanner import scan_records
from strata_core.records.types import (
    ExtractionResult,
    PinnedFinding,
    ArchiveStore,
    RecordDescriptor,
    Tier,
)

__all__ = [
    "ExtractionResult",
    "PinnedFinding",
    "ArchiveStore",
    "RecordDescriptor",
    "Tier",
    "critical_tests",
    "extract_critical",
    "is_critical_test",
    "list_pinned",
    "load_pinned",
    "purge_pinned",
    "scan_records",
]
