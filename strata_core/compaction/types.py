from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from strata_core.records.types import Tier


class Transition(str, Enum):
    NONE = "none"
    COMPRESS = "compress"
    DELETE_RAW = "delete_raw"
    SUMMARIZE = "summarize"
    DELETE_SUMMARY = "delete_summary"

    @property
    def target_tier(self) -> Tier | None:
        return {
            Transition.COMPRESS: Tier.COMPRESSED,
            Transition.DELETE_RAW: Tier.DELETED,
            Transition.SUMMARIZE: Tier.SUMMARY,
            Transition.DELETE_SUMMARY: Tier.DELETED,
        }.get(self)


@dataclass(frozen=True)
class TransitionResult:
    record_id: str
    transition: Transition
    source_tier: Tier
    source_bytes: int
    output_bytes: int = 0
    output_path: str | None = None
    reused_output: bool = False
    parse_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.parse_error is not None

    @property
    def bytes_freed(self) -> int:
        return self.source_bytes - self.output_bytes
