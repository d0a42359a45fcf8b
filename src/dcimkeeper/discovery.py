"""Enumerate the media files present under a directory tree."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Iterator

LOGGER = logging.getLogger(__name__)


def iter_files(root: Path) -> Iterator[Path]:
    """Yield every regular file below ``root`` in a stable, sorted order.

    Symbolic links are neither followed nor reported. Directories that
    cannot be listed are logged and skipped.
    """

    def _on_error(exc: OSError) -> None:
        LOGGER.warning("Cannot list %s: %s", exc.filename, exc.strerror or exc)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=False):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            try:
                mode = path.lstat().st_mode
            except OSError:
                continue
            if stat.S_ISREG(mode):
                yield path


__all__ = ["iter_files"]
