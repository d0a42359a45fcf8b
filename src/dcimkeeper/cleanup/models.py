"""Outcome records produced while retiring files and directories."""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SIMULATED_DELETE = "simulated-delete"
DELETED = "deleted"
DELETE_FAILED = "delete-failed"
DIR_REMOVED = "dir-removed"
DIR_REMOVAL_FAILED = "dir-removal-failed"
SIMULATED_DIR_REMOVAL = "simulated-dir-removal"

OutcomeTag = Literal[
    "simulated-delete",
    "deleted",
    "delete-failed",
    "dir-removed",
    "dir-removal-failed",
    "simulated-dir-removal",
]

FILE_TAGS = frozenset({SIMULATED_DELETE, DELETED, DELETE_FAILED})
FAILURE_TAGS = frozenset({DELETE_FAILED, DIR_REMOVAL_FAILED})


class OutcomeRecord(BaseModel):
    """Immutable result of processing one candidate file or empty directory.

    Attributes:
        tag: What happened to the target.
        path: File or directory the record describes.
        resolved_date: Capture date for files; ``None`` for directories.
        error: Failure reason for ``*-failed`` tags.
        timestamp: When the outcome was recorded.
    """

    model_config = ConfigDict(frozen=True)

    tag: OutcomeTag
    path: Path
    resolved_date: Optional[date] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failed(self) -> bool:
        return self.tag in FAILURE_TAGS

    @property
    def is_directory(self) -> bool:
        return self.tag not in FILE_TAGS


class OutcomeLog:
    """Thread-safe, append-only sink for outcome records.

    An optional listener is called (outside the lock) with every record as
    it is appended, e.g. to drive a progress display.
    """

    def __init__(self, listener: Callable[[OutcomeRecord], None] | None = None) -> None:
        self._records: list[OutcomeRecord] = []
        self._lock = threading.Lock()
        self._listener = listener

    def append(self, record: OutcomeRecord) -> None:
        with self._lock:
            self._records.append(record)
        if self._listener is not None:
            self._listener(record)

    def extend(self, records: Iterable[OutcomeRecord]) -> None:
        for record in records:
            self.append(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def snapshot(self) -> list[OutcomeRecord]:
        """Return a copy of the records appended so far, in append order."""
        with self._lock:
            return list(self._records)

    def count(self, tag: str) -> int:
        with self._lock:
            return sum(1 for record in self._records if record.tag == tag)


__all__ = [
    "SIMULATED_DELETE",
    "DELETED",
    "DELETE_FAILED",
    "DIR_REMOVED",
    "DIR_REMOVAL_FAILED",
    "SIMULATED_DIR_REMOVAL",
    "OutcomeTag",
    "OutcomeRecord",
    "OutcomeLog",
]
