import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Extra attributes copied from `logger.x(..., extra={...})` into the JSON line.
LOG_FIELDS = (
    "service",
    "env",
    "version",
    "run_id",
    "record_id",
    "tier",
    "transition",
    "path",
    "bytes_in",
    "bytes_out",
    "estimated_bytes_saved",
    "error_kind",
    "error_message",
    "state",
    "budget_bytes_used",
    "max_budget_bytes",
    "warning_budget_bytes",
    "transitions",
    "errored",
    "pinned",
    "report_uri",
    "lock_path",
    "lock_holder",
    "duration_ms",
)


def _utc_timestamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in LOG_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                base[key] = value

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=True, default=str)


class BaseFieldFilter(logging.Filter):
    """Stamp service identity on every record that passes the handler."""

    def __init__(
        self,
        service: str,
        env: str | None,
        version: str | None,
    ) -> None:
        super().__init__()
        self.service = service
        self.env = env
        self.version = version

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "service", None) is None:
            record.service = self.service
        if getattr(record, "env", None) is None:
            record.env = self.env
        if getattr(record, "version", None) is None:
            record.version = self.version
        return True


def configure_logging(
    service: str,
    env: str | None = None,
    version: str | None = None,
    *,
    level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route all logging to one JSON handler; stdout stays free for command output."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(log_level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(BaseFieldFilter(service=service, env=env, version=version))

    if root.handlers:
        root.handlers = []
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
