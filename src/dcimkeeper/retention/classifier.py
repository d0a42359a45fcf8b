"""Decide which on-device files are old enough to retire."""

from __future__ import annotations

import calendar
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from dcimkeeper.dating import MetadataResolver, ResolvedDate

from .models import DeletionCandidate

LOGGER = logging.getLogger(__name__)


def subtract_months(moment: date, months: int) -> date:
    """Return ``moment`` shifted back by ``months`` calendar months.

    The day is clamped to the end of the target month, so 31 March minus one
    month is the last day of February.
    """
    if months < 0:
        raise ValueError("months must be non-negative")
    total = moment.year * 12 + (moment.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_cutoff(run_started: datetime, retention_months: int) -> date:
    """Return the retention cutoff for a run that started at ``run_started``."""
    return subtract_months(run_started.date(), retention_months)


def is_eligible(resolved: ResolvedDate | date | None, cutoff: date) -> bool:
    """Return True only when the date is strictly before ``cutoff``.

    A file dated exactly on the cutoff is kept, and a file without a date is
    never eligible.
    """
    if resolved is None:
        return False
    value = resolved.value if isinstance(resolved, ResolvedDate) else resolved
    return value < cutoff


@dataclass(slots=True)
class ClassificationResult:
    """Files sorted into deletion candidates, retained and undated buckets."""

    candidates: list[DeletionCandidate] = field(default_factory=list)
    retained: list[Path] = field(default_factory=list)
    undated: list[Path] = field(default_factory=list)

    @property
    def scanned(self) -> int:
        return len(self.candidates) + len(self.retained) + len(self.undated)


class RetentionClassifier:
    """Resolve dates for a file set and pick out those before a fixed cutoff."""

    def __init__(self, resolver: MetadataResolver, cutoff: date, *, workers: int = 1) -> None:
        self.resolver = resolver
        self.cutoff = cutoff
        self.workers = max(1, workers)

    def classify(self, paths: Iterable[Path]) -> ClassificationResult:
        ordered = sorted(paths)
        result = ClassificationResult()

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="date") as pool:
            resolved: list[Optional[ResolvedDate]] = list(pool.map(self.resolver.resolve, ordered))

        for path, found in zip(ordered, resolved):
            if found is None:
                result.undated.append(path)
            elif is_eligible(found, self.cutoff):
                result.candidates.append(
                    DeletionCandidate(path=path, resolved_date=found.value, date_source=found.source)
                )
            else:
                result.retained.append(path)

        LOGGER.info(
            "Classified %d file(s) against cutoff %s: %d eligible, %d retained, %d undated",
            result.scanned,
            self.cutoff.isoformat(),
            len(result.candidates),
            len(result.retained),
            len(result.undated),
        )
        return result


__all__ = [
    "subtract_months",
    "compute_cutoff",
    "is_eligible",
    "ClassificationResult",
    "RetentionClassifier",
]
