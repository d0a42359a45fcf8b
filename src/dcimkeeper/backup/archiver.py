"""Pack a run's staging directory into a compressed archive."""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class Archiver(Protocol):
    def archive(self, directory: Path, destination: Path) -> Path: ...


class TarArchiver:
    """Write ``directory`` into a gzip-compressed tarball at ``destination``."""

    def archive(self, directory: Path, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(destination, "w:gz") as tar:
            tar.add(directory, arcname=directory.name)
        LOGGER.info("Archived %s to %s", directory, destination)
        return destination


__all__ = ["Archiver", "TarArchiver"]
