"""Concurrent executor for deletion candidates."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from dcimkeeper.retention import DeletionCandidate

from .models import (
    DELETE_FAILED,
    DELETED,
    SIMULATED_DELETE,
    OutcomeLog,
    OutcomeRecord,
)

LOGGER = logging.getLogger(__name__)

SOURCE_LOST_REASON = "source root unavailable; deletion not attempted"


class DeletionExecutor:
    """Delete candidate files on a bounded worker pool.

    Every candidate yields exactly one outcome record whether it was
    deleted, simulated, or failed. Workers share nothing but the outcome
    log. If the source root disappears mid-run, remaining candidates are
    recorded as failures without touching the filesystem.
    """

    def __init__(self, *, workers: int = 4, dry_run: bool = False) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers
        self.dry_run = dry_run

    def execute(
        self,
        candidates: Iterable[DeletionCandidate],
        *,
        root: Path | None = None,
        log: OutcomeLog | None = None,
    ) -> list[OutcomeRecord]:
        """Process ``candidates`` and return their outcome records sorted by path.

        Args:
            candidates: Files to retire.
            root: Source root; candidates outside it are refused and its
                disappearance stops further deletions.
            log: Shared sink that receives each record as it is produced.
        """
        work = list(candidates)
        sink = log if log is not None else OutcomeLog()
        source_lost = threading.Event()
        produced: list[OutcomeRecord] = []
        produced_lock = threading.Lock()

        def _run(candidate: DeletionCandidate) -> None:
            record = self._process(candidate, root, source_lost)
            with produced_lock:
                produced.append(record)
            sink.append(record)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="delete") as pool:
            for future in [pool.submit(_run, candidate) for candidate in work]:
                future.result()

        produced.sort(key=lambda record: str(record.path))
        deleted = sum(1 for record in produced if record.tag in (DELETED, SIMULATED_DELETE))
        LOGGER.info(
            "%s %d of %d candidate(s); %d failed",
            "Simulated deletion of" if self.dry_run else "Deleted",
            deleted,
            len(work),
            len(produced) - deleted,
        )
        return produced

    def _process(
        self,
        candidate: DeletionCandidate,
        root: Path | None,
        source_lost: threading.Event,
    ) -> OutcomeRecord:
        path = candidate.path
        if root is not None:
            if source_lost.is_set() or not root.is_dir():
                if not source_lost.is_set():
                    LOGGER.error("Source root %s disappeared; halting deletions", root)
                source_lost.set()
                return self._record(DELETE_FAILED, candidate, SOURCE_LOST_REASON)
            if root not in path.parents:
                return self._record(DELETE_FAILED, candidate, f"outside source root {root}")

        if self.dry_run:
            LOGGER.debug("[dry run] would delete %s", path)
            return self._record(SIMULATED_DELETE, candidate)

        try:
            path.unlink()
        except OSError as exc:
            LOGGER.warning("Failed to delete %s: %s", path, exc)
            return self._record(DELETE_FAILED, candidate, exc.strerror or str(exc))

        LOGGER.debug("Deleted %s", path)
        return self._record(DELETED, candidate)

    def _record(
        self, tag: str, candidate: DeletionCandidate, error: str | None = None
    ) -> OutcomeRecord:
        return OutcomeRecord(
            tag=tag,  # type: ignore[arg-type]
            path=candidate.path,
            resolved_date=candidate.resolved_date,
            error=error,
        )


__all__ = ["DeletionExecutor", "SOURCE_LOST_REASON"]
