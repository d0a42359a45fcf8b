"""Sequence backup, deduplication, retention and cleanup for one run."""

from __future__ import annotations

import logging
import os
import shutil
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional, Protocol

from dcimkeeper.backup import Archiver, SyncError, Synchronizer, SyncResult
from dcimkeeper.cleanup import (
    DELETE_FAILED,
    DELETED,
    DIR_REMOVAL_FAILED,
    DIR_REMOVED,
    SIMULATED_DELETE,
    SIMULATED_DIR_REMOVAL,
    DeletionExecutor,
    EmptyDirectoryReaper,
    OutcomeLog,
    OutcomeRecord,
)
from dcimkeeper.dating import MetadataReader, MetadataResolver
from dcimkeeper.discovery import iter_files
from dcimkeeper.errors import SourceUnavailableError
from dcimkeeper.ledger import DedupResult, HashComputer, HashLedger, deduplicate
from dcimkeeper.retention import RetentionClassifier, compute_cutoff

from .lock import RunLock
from .models import RunSettings, RunSummary

LOGGER = logging.getLogger(__name__)


class Reporter(Protocol):
    def report(self, summary: RunSummary) -> object: ...


def _local_now() -> datetime:
    return datetime.now().astimezone()


def check_source(root: Path) -> None:
    """Fail fast when the media root is missing or unreadable.

    Raises:
        SourceUnavailableError: If ``root`` is not a listable directory.
    """
    if not root.is_dir():
        raise SourceUnavailableError(f"Media root {root} does not exist or is not a directory.")
    try:
        with os.scandir(root) as entries:
            next(entries, None)
    except OSError as exc:
        raise SourceUnavailableError(f"Media root {root} is not accessible: {exc}") from exc


class RunCoordinator:
    """Run the whole pipeline against one source and ledger.

    The coordinator owns the single cutoff computation and the single
    ledger instance. Deduplication covers only the files this run
    transferred; retention covers every file currently on the device.
    """

    def __init__(
        self,
        settings: RunSettings,
        *,
        synchronizer: Synchronizer,
        reader: MetadataReader,
        archiver: Archiver | None = None,
        reporter: Reporter | None = None,
        hasher: HashComputer | None = None,
        clock: Callable[[], datetime] = _local_now,
        listener: Callable[[OutcomeRecord], None] | None = None,
    ) -> None:
        self.settings = settings
        self.synchronizer = synchronizer
        self.reader = reader
        self.archiver = archiver
        self.reporter = reporter
        self.hasher = hasher or HashComputer()
        self.clock = clock
        self.listener = listener

    def run(self) -> RunSummary:
        """Execute one run and return its summary.

        Raises:
            SourceUnavailableError: If the media root is absent at run start.
            RunLockedError: If another run holds the backup root.
            LedgerError: If the ledger file cannot be read.
        """
        settings = self.settings
        source = settings.source_root.expanduser().resolve()
        check_source(source)

        started = self.clock()
        cutoff = compute_cutoff(started, settings.retention_months)
        summary = RunSummary(
            started_at=started,
            dry_run=settings.dry_run,
            source_root=source,
            cutoff=cutoff,
            retention_months=settings.retention_months,
        )
        LOGGER.info(
            "Starting %srun for %s (cutoff %s, %d worker(s))",
            "dry " if settings.dry_run else "",
            source,
            cutoff.isoformat(),
            settings.workers,
        )

        with RunLock(settings.backup_root):
            try:
                protected = self._backup(source, started, summary)
            except SyncError as exc:
                LOGGER.error("Backup failed; no files will be retired this run: %s", exc)
                summary.errors.append(f"{source}: backup failed ({exc})")
            else:
                self._retire(source, cutoff, protected, summary)

        summary.finished_at = self.clock()
        if self.reporter is not None:
            self.reporter.report(summary)
        return summary

    # Stages -----------------------------------------------------------

    def _backup(self, source: Path, started: datetime, summary: RunSummary) -> set[Path]:
        """Transfer, deduplicate and archive; return source files that failed to copy."""
        settings = self.settings
        stamp = started.strftime("%Y-%m-%d_%H-%M")
        staging = settings.backup_root / f"tmp_backup_{stamp}"

        transfer: SyncResult = self.synchronizer.sync(source, staging, dry_run=settings.dry_run)
        summary.backed_up = len(transfer.placed)
        for path, message in transfer.failed:
            summary.errors.append(f"{path}: copy failed ({message})")

        # A dry run writes nothing to staging, so hash the device copies instead.
        if settings.dry_run:
            to_hash = [source / path.relative_to(staging) for path in transfer.placed]
        else:
            to_hash = list(transfer.placed)

        with HashLedger.load(settings.ledger_path, read_only=settings.dry_run) as ledger:
            dedup: DedupResult = deduplicate(
                to_hash, ledger, hasher=self.hasher, workers=settings.workers
            )
        summary.deduplicated = len(dedup.duplicates)
        summary.hash_failures = len(dedup.failures)
        for path, message in dedup.failures:
            summary.errors.append(f"{path}: hash failed ({message})")

        if not settings.dry_run and settings.archive and self.archiver and staging.is_dir():
            archive_path = settings.backup_root / f"Archive_{stamp}.tar.gz"
            try:
                summary.archive_path = self.archiver.archive(staging, archive_path)
            except OSError as exc:
                LOGGER.error("Archiving %s failed; staging directory kept: %s", staging, exc)
                summary.errors.append(f"{staging}: archive failed ({exc})")
            else:
                shutil.rmtree(staging, ignore_errors=True)

        return {path for path, _ in transfer.failed}

    def _retire(
        self,
        source: Path,
        cutoff: date,
        protected: set[Path],
        summary: RunSummary,
    ) -> None:
        settings = self.settings
        on_device = [path for path in iter_files(source) if path not in protected]
        if protected:
            LOGGER.warning(
                "Keeping %d file(s) that failed to copy off the device", len(protected)
            )

        resolver = MetadataResolver(self.reader, settings.tag_precedence)
        classifier = RetentionClassifier(resolver, cutoff, workers=settings.workers)
        classification = classifier.classify(on_device)
        summary.deletion_candidates = len(classification.candidates)
        summary.skipped_undated = len(classification.undated)

        log = OutcomeLog(self.listener)
        executor = DeletionExecutor(workers=settings.workers, dry_run=settings.dry_run)
        file_records = executor.execute(classification.candidates, root=source, log=log)

        dir_records: list[OutcomeRecord] = []
        if source.is_dir():
            reaper = EmptyDirectoryReaper(dry_run=settings.dry_run)
            simulated = [r.path for r in file_records if r.tag == SIMULATED_DELETE]
            dir_records = reaper.reap(source, log=log, removed=simulated)
        else:
            summary.errors.append(f"{source}: media root disappeared; empty directories not reaped")

        outcomes = file_records + dir_records
        summary.outcomes = outcomes
        summary.deleted = _count(outcomes, DELETED)
        summary.failed = _count(outcomes, DELETE_FAILED)
        summary.directories_reaped = _count(outcomes, DIR_REMOVED)
        summary.directory_failures = _count(outcomes, DIR_REMOVAL_FAILED)
        summary.simulated = _count(outcomes, SIMULATED_DELETE) + _count(
            outcomes, SIMULATED_DIR_REMOVAL
        )


def _count(records: list[OutcomeRecord], tag: str) -> int:
    return sum(1 for record in records if record.tag == tag)


def build_coordinator(
    settings: RunSettings,
    *,
    sync_backend: str = "copy",
    reader: Optional[MetadataReader] = None,
    reporter: Reporter | None = None,
    listener: Callable[[OutcomeRecord], None] | None = None,
    exiftool_timeout: float = 30.0,
) -> RunCoordinator:
    """Wire the default collaborators for a CLI run."""
    from dcimkeeper.backup import TarArchiver, build_synchronizer
    from dcimkeeper.dating import default_reader

    return RunCoordinator(
        settings,
        synchronizer=build_synchronizer(sync_backend),
        reader=reader or default_reader(exiftool_timeout=exiftool_timeout),
        archiver=TarArchiver(),
        reporter=reporter,
        listener=listener,
    )


__all__ = ["Reporter", "RunCoordinator", "build_coordinator", "check_source"]
