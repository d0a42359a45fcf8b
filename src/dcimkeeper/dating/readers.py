"""Metadata readers that look up capture-time tags for a file.

Every reader answers the same question: given a path and an ordered list of
tag names, what is the first tag that carries a value? Readers never raise
for per-file problems (missing tool, unreadable file, corrupt metadata);
those all come back as ``None`` so the resolver can fall through to the next
source.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from PIL import ExifTags, Image

LOGGER = logging.getLogger(__name__)

TagValue = tuple[str, str]


class MetadataReader(Protocol):
    """Look up the first populated tag among ``tags`` for ``path``."""

    def read_first(self, path: Path, tags: Sequence[str]) -> TagValue | None: ...


def _tag_key(tag: str) -> str:
    """Strip an exiftool group prefix (``QuickTime:CreateDate`` -> ``CreateDate``)."""
    return tag.rsplit(":", 1)[-1]


class ExiftoolReader:
    """Query tags through the ``exiftool`` command line program.

    A single invocation requests all tags at once in JSON form; the first tag
    in precedence order with a non-empty value wins.
    """

    def __init__(self, executable: str | None = None, *, timeout: float = 30.0) -> None:
        self.executable = executable or shutil.which("exiftool")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return self.executable is not None

    def read_first(self, path: Path, tags: Sequence[str]) -> TagValue | None:
        if not self.executable or not tags:
            return None

        command = [self.executable, "-json", "-q", *(f"-{tag}" for tag in tags), str(path.resolve())]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOGGER.debug("exiftool failed for %s: %s", path, exc)
            return None

        try:
            payload = json.loads(completed.stdout.decode("utf-8", errors="replace") or "[]")
        except json.JSONDecodeError:
            LOGGER.debug("exiftool returned unparseable output for %s", path)
            return None
        if not payload or not isinstance(payload[0], dict):
            return None

        record = payload[0]
        for tag in tags:
            value = record.get(_tag_key(tag))
            if value not in (None, ""):
                return tag, str(value).strip()
        return None


# exiftool tag name -> EXIF tag id, looked up in the Exif sub-IFD first and IFD0 second.
_PILLOW_TAGS = {
    "DateTimeOriginal": ExifTags.Base.DateTimeOriginal,
    "CreateDate": ExifTags.Base.DateTimeDigitized,
    "ModifyDate": ExifTags.Base.DateTime,
}


class PillowExifReader:
    """Read EXIF date tags from still images using Pillow.

    Tags with no EXIF equivalent (QuickTime container dates) are ignored.
    """

    def read_first(self, path: Path, tags: Sequence[str]) -> TagValue | None:
        wanted = [(tag, _PILLOW_TAGS[_tag_key(tag)]) for tag in tags if _tag_key(tag) in _PILLOW_TAGS]
        if not wanted:
            return None
        try:
            with Image.open(path) as img:
                exif = img.getexif()
                sub_ifd = exif.get_ifd(ExifTags.IFD.Exif)
                for tag, tag_id in wanted:
                    value = sub_ifd.get(tag_id) or exif.get(tag_id)
                    if isinstance(value, bytes):
                        value = value.decode("ascii", errors="ignore")
                    if value and str(value).strip("\x00 "):
                        return tag, str(value).strip("\x00 ")
        except (OSError, ValueError, SyntaxError) as exc:
            LOGGER.debug("Pillow could not read EXIF from %s: %s", path, exc)
        return None


class ChainedReader:
    """Try several readers in order and return the first answer."""

    def __init__(self, readers: Iterable[MetadataReader]) -> None:
        self.readers = list(readers)

    def read_first(self, path: Path, tags: Sequence[str]) -> TagValue | None:
        for reader in self.readers:
            try:
                found = reader.read_first(path, tags)
            except Exception as exc:  # pragma: no cover - misbehaving reader
                LOGGER.debug("%s raised for %s: %s", type(reader).__name__, path, exc)
                continue
            if found is not None:
                return found
        return None


def default_reader(*, exiftool_timeout: float = 30.0) -> MetadataReader:
    """Return exiftool (when installed) backed by Pillow for still images."""
    readers: list[MetadataReader] = []
    exiftool = ExiftoolReader(timeout=exiftool_timeout)
    if exiftool.available:
        readers.append(exiftool)
    else:
        LOGGER.info("exiftool not found on PATH; using Pillow EXIF reader only.")
    readers.append(PillowExifReader())
    return ChainedReader(readers)


__all__ = [
    "TagValue",
    "MetadataReader",
    "ExiftoolReader",
    "PillowExifReader",
    "ChainedReader",
    "default_reader",
]
