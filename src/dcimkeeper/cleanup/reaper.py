"""Remove directories left empty after deletions."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from .models import (
    DIR_REMOVAL_FAILED,
    DIR_REMOVED,
    SIMULATED_DIR_REMOVAL,
    OutcomeLog,
    OutcomeRecord,
)

LOGGER = logging.getLogger(__name__)


class EmptyDirectoryReaper:
    """Remove empty directories beneath a root, deepest first.

    Must only run once all deletions for the run have finished. Removing a
    child can leave its parent empty; the parent is then removed in the same
    pass. In dry-run mode directories are reported but kept, and a simulated
    removal still counts toward its parent's emptiness so the report matches
    what a real pass would do. The root itself is never removed.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def reap(
        self,
        root: Path,
        *,
        log: OutcomeLog | None = None,
        removed: Iterable[Path] = (),
    ) -> list[OutcomeRecord]:
        """Remove empty directories under ``root`` and return one record each.

        Args:
            root: Directory whose descendants are considered; never removed.
            log: Optional outcome log that receives each record as it is made.
            removed: Files already counted as gone, such as this run's
                simulated deletions, which do not keep a directory alive.
        """
        records: list[OutcomeRecord] = []
        gone: set[str] = {str(path) for path in removed}

        for dirpath, _dirnames, _filenames in os.walk(root, topdown=False, followlinks=False):
            directory = Path(dirpath)
            if directory == root:
                continue
            record = self._visit(directory, gone)
            if record is None:
                continue
            records.append(record)
            if log is not None:
                log.append(record)

        count = sum(1 for record in records if not record.failed)
        LOGGER.info(
            "%s %d empty director%s under %s",
            "Would remove" if self.dry_run else "Removed",
            count,
            "y" if count == 1 else "ies",
            root,
        )
        return records

    def _visit(self, directory: Path, gone: set[str]) -> OutcomeRecord | None:
        try:
            entries = os.listdir(directory)
        except OSError as exc:
            LOGGER.warning("Cannot list %s: %s", directory, exc)
            return OutcomeRecord(tag=DIR_REMOVAL_FAILED, path=directory, error=str(exc))

        if any(os.path.join(directory, entry) not in gone for entry in entries):
            return None

        if self.dry_run:
            gone.add(str(directory))
            return OutcomeRecord(tag=SIMULATED_DIR_REMOVAL, path=directory)

        try:
            directory.rmdir()
        except OSError as exc:
            LOGGER.warning("Failed to remove directory %s: %s", directory, exc)
            return OutcomeRecord(
                tag=DIR_REMOVAL_FAILED, path=directory, error=exc.strerror or str(exc)
            )
        gone.add(str(directory))
        return OutcomeRecord(tag=DIR_REMOVED, path=directory)


__all__ = ["EmptyDirectoryReaper"]
