from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass

from strata_core.errors import ConfigError

GIB = 1024 * 1024 * 1024


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class RetentionPolicy:
    compress_after_days: float = 3
    raw_retention_days: float = 7
    compressed_retention_days: float = 30
    summary_retention_days: float = 90
    max_budget_bytes: int = 5 * GIB
    warning_budget_bytes: int = 3 * GIB
    delete_uncompressed_raw: bool = False

    @classmethod
    def from_env(cls) -> "RetentionPolicy":
        def _env_float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} must be a number") from exc

        def _env_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} must be an integer") from exc

        policy = cls(
            compress_after_days=_env_float("STRATA_COMPRESS_AFTER_DAYS", 3),
            raw_retention_days=_env_float("STRATA_RAW_RETENTION_DAYS", 7),
            compressed_retention_days=_env_float(
                "STRATA_COMPRESSED_RETENTION_DAYS", 30
            ),
            summary_retention_days=_env_float("STRATA_SUMMARY_RETENTION_DAYS", 90),
            max_budget_bytes=_env_int("STRATA_MAX_BUDGET_BYTES", 5 * GIB),
            warning_budget_bytes=_env_int("STRATA_WARNING_BUDGET_BYTES", 3 * GIB),
            delete_uncompressed_raw=parse_bool(
                os.getenv("STRATA_DELETE_UNCOMPRESSED_RAW"), False
            ),
        )
        return policy.validate()

    def validate(self) -> "RetentionPolicy":
        thresholds = (
            ("compress_after_days", self.compress_after_days),
            ("raw_retention_days", self.raw_retention_days),
            ("compressed_retention_days", self.compressed_retention_days),
            ("summary_retention_days", self.summary_retention_days),
        )
        for name, value in thresholds:
            if not math.isfinite(value):
                raise ConfigError(f"{name} must be a finite number")
            if value < 0:
                raise ConfigError(f"{name} must not be negative")
        for (lower_name, lower), (upper_name, upper) in zip(
            thresholds, thresholds[1:]
        ):
            if lower >= upper:
                raise ConfigError(
                    f"{lower_name} ({lower}) must be less than {upper_name} ({upper})"
                )
        if self.max_budget_bytes <= 0:
            raise ConfigError("max_budget_bytes must be positive")
        if self.warning_budget_bytes < 0:
            raise ConfigError("warning_budget_bytes must not be negative")
        if self.warning_budget_bytes >= self.max_budget_bytes:
            raise ConfigError(
                "warning_budget_bytes must be less than max_budget_bytes"
            )
        return self

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
