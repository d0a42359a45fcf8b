"""End-to-end tests for the run coordinator."""

import hashlib
import os
from datetime import date, datetime
from pathlib import Path
from typing import Sequence

import pytest

from dcimkeeper.backup import CopySynchronizer, SyncError, SyncResult, TarArchiver
from dcimkeeper.cleanup import SIMULATED_DELETE, SIMULATED_DIR_REMOVAL
from dcimkeeper.errors import RunLockedError, SourceUnavailableError
from dcimkeeper.reporting import JsonReporter
from dcimkeeper.retention import subtract_months
from dcimkeeper.run import LOCK_FILENAME, RunCoordinator, RunSettings

STARTED = datetime(2024, 6, 15, 12, 0)


class NoMetadataReader:
    def read_first(self, path: Path, tags: Sequence[str]):
        return None


class FailingSynchronizer:
    def sync(self, source: Path, destination: Path, *, dry_run: bool = False) -> SyncResult:
        raise SyncError("device went away mid-transfer")


class PartialSynchronizer:
    """Copies nothing and reports one file as failed."""

    def __init__(self, failed: Path) -> None:
        self.failed = failed

    def sync(self, source: Path, destination: Path, *, dry_run: bool = False) -> SyncResult:
        return SyncResult(placed=[], failed=[(self.failed, "Input/output error")])


def _aged_file(path: Path, months_old: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(os.fsencode(path.name) + f" {months_old}".encode())
    moment = datetime.combine(subtract_months(STARTED.date(), months_old), STARTED.time())
    os.utime(path, (moment.timestamp(), moment.timestamp()))
    return path


@pytest.fixture()
def layout(tmp_path: Path) -> dict[str, Path]:
    source = tmp_path / "mount" / "DCIM"
    return {
        "source": source,
        "backup": tmp_path / "backup",
        "old": _aged_file(source / "100APPLE" / "IMG_0001.JPG", 13),
        "recent": _aged_file(source / "100APPLE" / "IMG_0002.JPG", 11),
        "new": _aged_file(source / "101APPLE" / "IMG_0003.MOV", 1),
    }


def _settings(layout: dict[str, Path], **overrides: object) -> RunSettings:
    values: dict[str, object] = {
        "source_root": layout["source"],
        "backup_root": layout["backup"],
        "ledger_path": layout["backup"] / "photo_hashes.txt",
        "retention_months": 12,
        "workers": 3,
    }
    values.update(overrides)
    return RunSettings(**values)


def _coordinator(settings: RunSettings, **overrides: object) -> RunCoordinator:
    options: dict[str, object] = {
        "synchronizer": CopySynchronizer(),
        "reader": NoMetadataReader(),
        "archiver": TarArchiver(),
        "reporter": JsonReporter(settings.backup_root),
        "clock": lambda: STARTED,
    }
    options.update(overrides)
    return RunCoordinator(settings, **options)  # type: ignore[arg-type]


def _snapshot(root: Path) -> dict[Path, bytes]:
    return {path: path.read_bytes() for path in sorted(root.rglob("*")) if path.is_file()}


def test_run_backs_up_and_retires_only_files_past_retention(layout: dict[str, Path]) -> None:
    settings = _settings(layout)

    summary = _coordinator(settings).run()

    assert summary.cutoff == date(2023, 6, 15)
    assert summary.backed_up == 3
    assert summary.deletion_candidates == 1
    assert summary.deleted == 1
    assert summary.failed == 0
    assert summary.errors == []
    assert not layout["old"].exists()
    assert layout["recent"].exists()
    assert layout["new"].exists()

    ledger_lines = settings.ledger_path.read_text(encoding="utf-8").splitlines()
    assert len(ledger_lines) == 3
    assert hashlib.sha256(b"IMG_0001.JPG 13").hexdigest() in ledger_lines

    assert summary.archive_path == layout["backup"] / "Archive_2024-06-15_12-00.tar.gz"
    assert summary.archive_path.exists()
    assert not (layout["backup"] / "tmp_backup_2024-06-15_12-00").exists()
    assert not (layout["backup"] / LOCK_FILENAME).exists()


def test_second_run_deduplicates_against_the_ledger(layout: dict[str, Path]) -> None:
    settings = _settings(layout, archive=False)
    _coordinator(settings).run()
    # A second copy of content that was archived on the first run.
    duplicate = layout["source"] / "102APPLE" / "IMG_0002.JPG"
    duplicate.parent.mkdir()
    duplicate.write_bytes(layout["recent"].read_bytes())

    summary = _coordinator(settings).run()

    assert summary.backed_up == 1
    assert summary.deduplicated == 1
    assert len(settings.ledger_path.read_text(encoding="utf-8").splitlines()) == 3


def test_dry_run_leaves_source_and_ledger_untouched(layout: dict[str, Path]) -> None:
    settings = _settings(layout, dry_run=True)
    settings.ledger_path.parent.mkdir(parents=True)
    settings.ledger_path.write_text(hashlib.sha256(b"x").hexdigest() + "\n", encoding="utf-8")
    (layout["source"] / "102APPLE" / "empty").mkdir(parents=True)
    source_before = _snapshot(layout["source"])
    ledger_before = settings.ledger_path.read_bytes()

    summary = _coordinator(settings).run()

    assert summary.dry_run
    assert summary.deletion_candidates == 1
    assert summary.deleted == 0
    assert summary.simulated == 3
    assert summary.directories_reaped == 0
    assert _snapshot(layout["source"]) == source_before
    assert (layout["source"] / "102APPLE" / "empty").is_dir()
    assert settings.ledger_path.read_bytes() == ledger_before
    assert summary.archive_path is None
    assert not (layout["backup"] / "tmp_backup_2024-06-15_12-00").exists()


def test_missing_source_aborts_before_any_work(tmp_path: Path) -> None:
    backup = tmp_path / "backup"
    settings = RunSettings(
        source_root=tmp_path / "not-mounted" / "DCIM",
        backup_root=backup,
        ledger_path=backup / "photo_hashes.txt",
    )

    with pytest.raises(SourceUnavailableError):
        _coordinator(settings).run()

    assert not backup.exists()


def test_empty_directories_are_reaped_after_deletion(layout: dict[str, Path]) -> None:
    lonely = _aged_file(layout["source"] / "103APPLE" / "IMG_0009.JPG", 24)

    summary = _coordinator(_settings(layout, archive=False)).run()

    assert summary.deleted == 2
    assert summary.directories_reaped == 1
    assert not lonely.parent.exists()
    assert layout["source"].is_dir()


def test_files_that_failed_to_copy_are_kept(layout: dict[str, Path]) -> None:
    settings = _settings(layout)

    summary = _coordinator(settings, synchronizer=PartialSynchronizer(layout["old"])).run()

    assert layout["old"].exists()
    assert summary.deleted == 0
    assert any("copy failed" in entry for entry in summary.errors)


def test_sync_error_skips_retirement(layout: dict[str, Path]) -> None:
    summary = _coordinator(_settings(layout), synchronizer=FailingSynchronizer()).run()

    assert layout["old"].exists()
    assert summary.deletion_candidates == 0
    assert any("backup failed" in entry for entry in summary.errors)


def test_concurrent_run_is_refused(layout: dict[str, Path]) -> None:
    settings = _settings(layout)
    settings.backup_root.mkdir(parents=True)
    (settings.backup_root / LOCK_FILENAME).write_text("123\n", encoding="utf-8")

    with pytest.raises(RunLockedError):
        _coordinator(settings).run()

    assert layout["old"].exists()


def test_report_is_written_and_reloadable(layout: dict[str, Path]) -> None:
    settings = _settings(layout)
    reporter = JsonReporter(settings.backup_root)
    seen: list[str] = []

    summary = _coordinator(settings, reporter=reporter, listener=lambda r: seen.append(r.tag)).run()

    assert reporter.last_path is not None
    assert reporter.last_path.parent == settings.backup_root / "reports"
    reloaded = reporter.load(reporter.last_path)
    assert reloaded.counts() == summary.counts()
    assert [record.path for record in reloaded.outcomes] == [layout["old"]]
    assert seen == ["deleted"]


@pytest.mark.parametrize(
    "raw_name",
    [b"IMG_\xff.JPG", b"IMG\nA 1.JPG", b" [backup] IMG_0004.JPG"],
)
def test_run_retires_files_with_awkward_names(layout: dict[str, Path], raw_name: bytes) -> None:
    awkward = _aged_file(layout["source"] / "100APPLE" / os.fsdecode(raw_name), 13)
    settings = _settings(layout)
    reporter = JsonReporter(settings.backup_root)

    summary = _coordinator(settings, reporter=reporter).run()

    assert summary.deleted == 2
    assert summary.failed == 0
    assert summary.errors == []
    assert not awkward.exists()
    assert layout["recent"].exists()

    assert reporter.last_path is not None
    reloaded = reporter.load(reporter.last_path)
    assert reloaded.counts() == summary.counts()
    reported = {os.fsencode(record.path.name) for record in reloaded.outcomes}
    assert reported == {raw_name, b"IMG_0001.JPG"}


def test_dry_run_reports_directories_emptied_by_simulated_deletions(
    layout: dict[str, Path],
) -> None:
    lonely = _aged_file(layout["source"] / "103APPLE" / "IMG_0009.JPG", 24)

    summary = _coordinator(_settings(layout, dry_run=True)).run()

    simulated = {(record.tag, record.path) for record in summary.outcomes}
    assert simulated == {
        (SIMULATED_DELETE, layout["old"]),
        (SIMULATED_DELETE, lonely),
        (SIMULATED_DIR_REMOVAL, lonely.parent),
    }
    assert summary.simulated == 3
    assert summary.directories_reaped == 0
    assert lonely.exists()
