from __future__ import annotations

import json
import os
import socket
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType

from strata_core.errors import PassLockedError
from strata_core.logging import get_logger

logger = get_logger(__name__)


class PassLock:
    """Advisory marker file held for the duration of one pass.

    The file is created with O_EXCL, so a second pass on the same archive
    refuses to start while the marker exists. A marker left behind by a killed
    process must be cleared with `release_stale`.
    """

    def __init__(self, lock_path: str | Path, run_id: str | None = None) -> None:
        self.lock_path = Path(lock_path)
        self.run_id = run_id
        self.holder = f"{os.getpid()}@{socket.gethostname()}"
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            existing = read_lock_info(self.lock_path)
            logger.error(
                "Another pass holds the archive lock",
                extra={
                    "lock_path": str(self.lock_path),
                    "lock_holder": existing.get("holder", "unknown"),
                },
            )
            raise PassLockedError(
                f"Pass lock {self.lock_path} is held by "
                f"{existing.get('holder', 'unknown')} since "
                f"{existing.get('acquired_at', 'unknown')}"
            ) from exc
        info = {
            "holder": self.holder,
            "run_id": self.run_id,
            "acquired_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            os.write(fd, json.dumps(info).encode("utf-8"))
            os.fsync(fd)
        finally:
            os.close(fd)
        self._held = True
        logger.info(
            "Acquired pass lock",
            extra={"lock_path": str(self.lock_path), "run_id": self.run_id},
        )

    def release(self) -> None:
        if not self._held:
            return
        self.lock_path.unlink(missing_ok=True)
        self._held = False
        logger.info(
            "Released pass lock",
            extra={"lock_path": str(self.lock_path), "run_id": self.run_id},
        )

    def __enter__(self) -> "PassLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def read_lock_info(lock_path: str | Path) -> dict[str, str]:
    try:
        raw = Path(lock_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {"holder": raw.strip() or "unknown"}
    return data if isinstance(data, dict) else {}


def release_stale(lock_path: str | Path) -> dict[str, str] | None:
    """Remove a marker left by a pass that did not finish; return its contents."""
    path = Path(lock_path)
    if not path.exists():
        return None
    info = read_lock_info(path)
    path.unlink(missing_ok=True)
    logger.warning(
        "Removed pass lock",
        extra={"lock_path": str(path), "lock_holder": info.get("holder", "unknown")},
    )
    return info
