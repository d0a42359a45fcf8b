"""Persistent, append-only ledger of archived content hashes."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import IO, Optional

from dcimkeeper.errors import LedgerError

LOGGER = logging.getLogger(__name__)

_DIGEST = re.compile(r"^[0-9a-f]{64}$")


def normalize_digest(value: str) -> str:
    """Return ``value`` as a lowercase SHA-256 hex digest.

    Raises:
        ValueError: If the value is not a 64 character hex string.
    """
    digest = value.strip().lower()
    if not _DIGEST.match(digest):
        raise ValueError(f"Not a SHA-256 hex digest: {value!r}")
    return digest


class HashLedger:
    """Set of content hashes seen across backup runs.

    The ledger file is read once into memory. All membership tests and
    inserts go through one lock, which also guards the append stream, so
    concurrent hashing threads can never both decide a hash is new and
    append it twice.

    In read-only mode nothing is written; inserts are tracked in memory so a
    dry run still reports duplicates within the same run.
    """

    def __init__(self, path: Path, hashes: set[str], *, read_only: bool = False) -> None:
        self.path = path
        self.read_only = read_only
        self._hashes = hashes
        self._lock = threading.Lock()
        self._stream: Optional[IO[str]] = None
        self._needs_separator = False

    @classmethod
    def load(cls, path: Path, *, read_only: bool = False) -> "HashLedger":
        """Read the ledger at ``path``; a missing file is an empty ledger.

        Raises:
            LedgerError: If the file exists but cannot be read.
        """
        hashes: set[str] = set()
        skipped = 0
        needs_separator = False
        if path.exists():
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise LedgerError(f"Unable to read hash ledger {path}: {exc}") from exc
            needs_separator = bool(text) and not text.endswith("\n")
            for line in text.splitlines():
                if not line.strip():
                    continue
                try:
                    hashes.add(normalize_digest(line))
                except ValueError:
                    skipped += 1
        if skipped:
            LOGGER.warning("Skipped %d malformed line(s) in hash ledger %s", skipped, path)
        LOGGER.debug("Loaded %d hash(es) from %s", len(hashes), path)

        ledger = cls(path, hashes, read_only=read_only)
        ledger._needs_separator = needs_separator
        return ledger

    def __len__(self) -> int:
        with self._lock:
            return len(self._hashes)

    def __contains__(self, digest: object) -> bool:
        return isinstance(digest, str) and self.contains(digest)

    def contains(self, digest: str) -> bool:
        """Return whether ``digest`` is already recorded."""
        key = normalize_digest(digest)
        with self._lock:
            return key in self._hashes

    def insert(self, digest: str) -> bool:
        """Record ``digest``; return False without writing if it was already present.

        Raises:
            LedgerError: If the ledger file cannot be appended to.
        """
        key = normalize_digest(digest)
        with self._lock:
            if key in self._hashes:
                return False
            if not self.read_only:
                self._append(key)
            self._hashes.add(key)
            return True

    def close(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._stream.close()
                self._stream = None

    def __enter__(self) -> "HashLedger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _append(self, digest: str) -> None:
        try:
            if self._stream is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._stream = self.path.open("a", encoding="utf-8")
            if self._needs_separator:
                self._stream.write("\n")
                self._needs_separator = False
            self._stream.write(digest + "\n")
            self._stream.flush()
        except OSError as exc:
            raise LedgerError(f"Unable to append to hash ledger {self.path}: {exc}") from exc


__all__ = ["HashLedger", "normalize_digest"]
