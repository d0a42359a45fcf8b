"""Exclusive lock guarding a backup root against concurrent runs."""

from __future__ import annotations

import os
from pathlib import Path

from dcimkeeper.errors import RunLockedError

LOCK_FILENAME = ".dcimkeeper.lock"


class RunLock:
    """Create ``<backup_root>/.dcimkeeper.lock`` exclusively for the duration of a run."""

    def __init__(self, backup_root: Path) -> None:
        self.path = backup_root / LOCK_FILENAME
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise RunLockedError(
                f"Another run holds {self.path}; remove it if no run is active."
            ) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(f"{os.getpid()}\n")
        self._held = True

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


__all__ = ["LOCK_FILENAME", "RunLock"]
