import os
from dataclasses import dataclass

from strata_core.errors import ConfigError
from strata_core.retention.policy import RetentionPolicy, parse_bool

DEFAULT_RESULTS_DIR = "./security-results"
DEFAULT_ARCHIVE_DIR = "./security-archives"
DEFAULT_SAMPLE_SIZE = 100


@dataclass(frozen=True)
class Config:
    results_dir: str
    archive_dir: str
    env: str
    log_level: str
    version: str | None
    prediction_sample_size: int
    write_reports: bool
    policy: RetentionPolicy

    def with_dirs(
        self,
        *,
        results_dir: str | None = None,
        archive_dir: str | None = None,
    ) -> "Config":
        return Config(
            results_dir=results_dir or self.results_dir,
            archive_dir=archive_dir or self.archive_dir,
            env=self.env,
            log_level=self.log_level,
            version=self.version,
            prediction_sample_size=self.prediction_sample_size,
            write_reports=self.write_reports,
            policy=self.policy,
        )

    @classmethod
    def from_env(cls) -> "Config":
        sample_raw = os.getenv("STRATA_PREDICTION_SAMPLE_SIZE", "")
        if sample_raw:
            try:
                sample_size = int(sample_raw)
            except ValueError as exc:
                raise ConfigError(
                    "STRATA_PREDICTION_SAMPLE_SIZE must be an integer"
                ) from exc
        else:
            sample_size = DEFAULT_SAMPLE_SIZE
        if sample_size < 2:
            raise ConfigError("STRATA_PREDICTION_SAMPLE_SIZE must be at least 2")

        return cls(
            results_dir=os.getenv("STRATA_RESULTS_DIR") or DEFAULT_RESULTS_DIR,
            archive_dir=os.getenv("STRATA_ARCHIVE_DIR") or DEFAULT_ARCHIVE_DIR,
            env=os.getenv("ENV", "dev"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            version=os.getenv("STRATA_VERSION"),
            prediction_sample_size=sample_size,
            write_reports=parse_bool(os.getenv("STRATA_WRITE_REPORTS"), True),
            policy=RetentionPolicy.from_env(),
        )
