from strata_core.compaction.pipeline import (
    ESTIMATED_COMPRESSION_RATIO,
    apply_transition,
    plan_transition,
)
from strata_core.compaction.summary import build_summary
from strata_core.compaction.types import Transition, TransitionResult

__all__ = [
    "ESTIMATED_COMPRESSION_RATIO",
    "Transition",
    "TransitionResult",
    "apply_transition",
    "build_summary",
    "plan_transition",
]
