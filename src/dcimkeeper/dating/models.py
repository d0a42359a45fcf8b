"""Resolved capture dates."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict

MTIME_SOURCE = "mtime"


class ResolvedDate(BaseModel):
    """Calendar date attached to a media file.

    Attributes:
        value: Capture date at day granularity.
        source: Metadata tag that produced the date, or ``"mtime"`` for the filesystem fallback.
    """

    model_config = ConfigDict(frozen=True)

    value: date
    source: str

    @property
    def from_metadata(self) -> bool:
        return self.source != MTIME_SOURCE


__all__ = ["MTIME_SOURCE", "ResolvedDate"]
