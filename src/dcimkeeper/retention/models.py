"""Deletion candidate records."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class DeletionCandidate(BaseModel):
    """A file whose resolved date falls before the run's cutoff.

    Attributes:
        path: Absolute path of the file on the mounted source.
        resolved_date: Capture date that made the file eligible.
        date_source: Metadata tag or ``"mtime"`` that supplied the date.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    resolved_date: date
    date_source: str


__all__ = ["DeletionCandidate"]
