"""Resolve the capture date of a media file."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence

from dcimkeeper.config.models import DEFAULT_TAG_PRECEDENCE

from .models import MTIME_SOURCE, ResolvedDate
from .readers import MetadataReader

LOGGER = logging.getLogger(__name__)

# Year, month and day separated by ':', '-', '/' or '.', optionally followed by a time part.
_DATE_PREFIX = re.compile(r"^\s*(\d{4})[:\-/.](\d{1,2})[:\-/.](\d{1,2})(?:$|[\sT])")


def parse_date_portion(raw: str | None) -> Optional[date]:
    """Parse the calendar date from a metadata value, ignoring time of day.

    Accepts EXIF style (``2023:07:14 10:22:31``), ISO style
    (``2023-07-14T10:22:31+02:00``) and slash separated values. Returns
    ``None`` for empty, zeroed (``0000:00:00``) or otherwise invalid dates.
    """
    if not raw:
        return None
    match = _DATE_PREFIX.match(raw)
    if match is None:
        return None
    year, month, day = (int(group) for group in match.groups())
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if parsed.year < 1900:
        return None
    return parsed


class MetadataResolver:
    """Produce a best-effort capture date for a file.

    Metadata tags are consulted in precedence order; when none yields a
    parseable date the file's modification time is used. Files with neither
    resolve to ``None`` and must never be treated as eligible for deletion.
    """

    def __init__(
        self,
        reader: MetadataReader,
        tags: Sequence[str] | None = None,
    ) -> None:
        self.reader = reader
        self.tags = list(tags) if tags is not None else list(DEFAULT_TAG_PRECEDENCE)

    def resolve(self, path: Path) -> Optional[ResolvedDate]:
        """Return the resolved date for ``path`` or ``None`` when nothing is known."""
        remaining = list(self.tags)
        while remaining:
            found = self._read(path, remaining)
            if found is None:
                break
            tag, raw = found
            parsed = parse_date_portion(raw)
            if parsed is not None:
                return ResolvedDate(value=parsed, source=tag)
            LOGGER.debug("Ignoring unparseable %s=%r on %s", tag, raw, path)
            # Retry with the tags after the one that produced garbage.
            remaining = remaining[remaining.index(tag) + 1 :] if tag in remaining else []

        return self._from_mtime(path)

    def _read(self, path: Path, tags: Sequence[str]):
        try:
            return self.reader.read_first(path, tags)
        except Exception as exc:  # pragma: no cover - readers are expected to swallow errors
            LOGGER.debug("Metadata lookup failed for %s: %s", path, exc)
            return None

    def _from_mtime(self, path: Path) -> Optional[ResolvedDate]:
        try:
            mtime = path.stat().st_mtime
        except OSError as exc:
            LOGGER.warning("No metadata or modification time for %s: %s", path, exc)
            return None
        try:
            value = datetime.fromtimestamp(mtime).date()
        except (OverflowError, OSError, ValueError):
            return None
        return ResolvedDate(value=value, source=MTIME_SOURCE)


__all__ = ["MetadataResolver", "parse_date_portion"]
