"""Tests for file discovery, synchronization and archiving."""

import os
import tarfile
from pathlib import Path

import pytest

from dcimkeeper.backup import (
    CopySynchronizer,
    RsyncSynchronizer,
    SyncError,
    TarArchiver,
    build_synchronizer,
)
from dcimkeeper.discovery import iter_files


def _make_source(root: Path) -> list[Path]:
    files = [
        root / "100APPLE" / "IMG_0001.JPG",
        root / "100APPLE" / "IMG_0002.MOV",
        root / "101APPLE" / "IMG 0003 (edited).HEIC",
    ]
    for index, path in enumerate(files):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(f"media {index}".encode())
    return files


def test_iter_files_is_sorted_and_skips_symlinks(tmp_path: Path) -> None:
    files = _make_source(tmp_path)
    (tmp_path / "100APPLE" / "link.JPG").symlink_to(files[0])

    assert list(iter_files(tmp_path)) == files


def test_copy_synchronizer_copies_new_files_and_preserves_mtime(tmp_path: Path) -> None:
    source = tmp_path / "DCIM"
    files = _make_source(source)
    os.utime(files[0], (1_500_000_000, 1_500_000_000))
    destination = tmp_path / "staging"

    result = CopySynchronizer().sync(source, destination)

    assert result.placed == [destination / path.relative_to(source) for path in files]
    assert result.failed == []
    copied = destination / "100APPLE" / "IMG_0001.JPG"
    assert copied.read_bytes() == b"media 0"
    assert int(copied.stat().st_mtime) == 1_500_000_000


def test_copy_synchronizer_ignores_existing_files(tmp_path: Path) -> None:
    source = tmp_path / "DCIM"
    files = _make_source(source)
    destination = tmp_path / "staging"
    existing = destination / "100APPLE" / "IMG_0001.JPG"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"already here")

    result = CopySynchronizer().sync(source, destination)

    assert existing not in result.placed
    assert len(result.placed) == len(files) - 1
    assert existing.read_bytes() == b"already here"


def test_copy_synchronizer_dry_run_writes_nothing(tmp_path: Path) -> None:
    source = tmp_path / "DCIM"
    files = _make_source(source)
    destination = tmp_path / "staging"

    result = CopySynchronizer().sync(source, destination, dry_run=True)

    assert len(result.placed) == len(files)
    assert not destination.exists()


def test_rsync_synchronizer_requires_binary(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("dcimkeeper.backup.synchronizer.shutil.which", lambda _name: None)

    with pytest.raises(SyncError):
        RsyncSynchronizer().sync(tmp_path, tmp_path / "staging")


def test_build_synchronizer_selects_backend() -> None:
    assert isinstance(build_synchronizer("copy"), CopySynchronizer)
    assert isinstance(build_synchronizer("rsync"), RsyncSynchronizer)


def test_tar_archiver_packs_directory(tmp_path: Path) -> None:
    staging = tmp_path / "tmp_backup_2024-06-15_12-00"
    _make_source(staging)
    destination = tmp_path / "Archive_2024-06-15_12-00.tar.gz"

    result = TarArchiver().archive(staging, destination)

    assert result == destination
    with tarfile.open(destination, "r:gz") as tar:
        names = tar.getnames()
    assert "tmp_backup_2024-06-15_12-00/100APPLE/IMG_0001.JPG" in names
