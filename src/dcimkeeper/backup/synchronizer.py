"""Copy new media off the device into a staging directory."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from dcimkeeper.discovery import iter_files
from dcimkeeper.errors import DcimKeeperError

LOGGER = logging.getLogger(__name__)


class SyncError(DcimKeeperError):
    """Raised when the synchronizer cannot complete a transfer."""


@dataclass(slots=True)
class SyncResult:
    """Files placed at the destination by one sync.

    Attributes:
        placed: Destination paths newly written (or, in dry-run, that would be written).
        failed: Source paths that could not be copied.
    """

    placed: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)


class Synchronizer(Protocol):
    def sync(self, source: Path, destination: Path, *, dry_run: bool = False) -> SyncResult: ...


def _pending_copies(source: Path, destination: Path) -> list[tuple[Path, Path]]:
    """Pair each source file with its destination, skipping ones already present."""
    pairs = []
    for path in iter_files(source):
        target = destination / path.relative_to(source)
        if not target.exists():
            pairs.append((path, target))
    return pairs


class CopySynchronizer:
    """Copy files that do not yet exist at the destination, preserving timestamps."""

    def sync(self, source: Path, destination: Path, *, dry_run: bool = False) -> SyncResult:
        result = SyncResult()
        for path, target in _pending_copies(source, destination):
            if dry_run:
                result.placed.append(target)
                continue
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
            except OSError as exc:
                LOGGER.warning("Failed to copy %s: %s", path, exc)
                result.failed.append((path, str(exc)))
                continue
            result.placed.append(target)

        LOGGER.info(
            "%s %d file(s) from %s to %s",
            "Would copy" if dry_run else "Copied",
            len(result.placed),
            source,
            destination,
        )
        return result


class RsyncSynchronizer:
    """Transfer with ``rsync --ignore-existing``.

    The set of newly placed files is derived by comparing the destination
    before and after the transfer rather than by parsing rsync's output.
    """

    def __init__(self, executable: str | None = None) -> None:
        self.executable = executable or shutil.which("rsync")

    def sync(self, source: Path, destination: Path, *, dry_run: bool = False) -> SyncResult:
        if self.executable is None:
            raise SyncError("rsync is not installed; set backup.sync_backend to 'copy'.")

        if dry_run:
            return SyncResult(placed=[target for _, target in _pending_copies(source, destination)])

        destination.mkdir(parents=True, exist_ok=True)
        before = set(iter_files(destination))
        command = [
            self.executable,
            "-a",
            "--ignore-existing",
            "--modify-window=1",
            f"{source}/",
            f"{destination}/",
        ]
        LOGGER.debug("Running %s", command)
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise SyncError(f"Unable to run rsync: {exc}") from exc
        if completed.returncode != 0:
            raise SyncError(
                f"rsync exited with status {completed.returncode}: {completed.stderr.strip()}"
            )

        placed = sorted(set(iter_files(destination)) - before)
        LOGGER.info("rsync placed %d file(s) in %s", len(placed), destination)
        return SyncResult(placed=placed)


def build_synchronizer(backend: str) -> Synchronizer:
    if backend == "rsync":
        return RsyncSynchronizer()
    return CopySynchronizer()


__all__ = [
    "SyncError",
    "SyncResult",
    "Synchronizer",
    "CopySynchronizer",
    "RsyncSynchronizer",
    "build_synchronizer",
]
