"""Content hashing and ledger deduplication for backed-up files."""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from dcimkeeper.errors import LedgerError

from .store import HashLedger

LOGGER = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class HashComputer:
    """Compute SHA-256 content hashes for deduplication."""

    def __init__(self, chunk_size: int = _CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    def compute(self, path: Path) -> str:
        """Return the hex digest of the file contents.

        Raises:
            OSError: If the file cannot be read.
        """
        digest = hashlib.sha256()
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()


@dataclass(slots=True)
class DedupResult:
    """Outcome of hashing one run's transferred files against the ledger.

    Attributes:
        inserted: Files whose content was new and is now in the ledger.
        duplicates: Files whose content the ledger already held.
        failures: ``(path, message)`` pairs for files that could not be hashed or recorded.
    """

    inserted: list[Path] = field(default_factory=list)
    duplicates: list[Path] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.inserted) + len(self.duplicates)


def deduplicate(
    paths: Iterable[Path],
    ledger: HashLedger,
    *,
    hasher: HashComputer | None = None,
    workers: int = 4,
) -> DedupResult:
    """Hash ``paths`` in parallel and record each digest in ``ledger``.

    Hashing runs on a thread pool; every insert decision goes through the
    ledger's lock. A file that cannot be hashed is left out of the ledger
    and listed in ``failures``.
    """
    hasher = hasher or HashComputer()
    result = DedupResult()
    ordered = sorted(paths)
    if not ordered:
        return result

    with ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="hash") as pool:
        futures = {pool.submit(hasher.compute, path): path for path in ordered}
        for future in as_completed(futures):
            path = futures[future]
            try:
                digest = future.result()
            except OSError as exc:
                LOGGER.warning("Could not hash %s: %s", path, exc)
                result.failures.append((path, str(exc)))
                continue
            try:
                inserted = ledger.insert(digest)
            except LedgerError as exc:
                LOGGER.error("%s", exc)
                result.failures.append((path, str(exc)))
                continue
            (result.inserted if inserted else result.duplicates).append(path)

    result.inserted.sort()
    result.duplicates.sort()
    result.failures.sort()
    LOGGER.info(
        "Hashed %d file(s): %d new, %d already archived, %d failed",
        len(ordered),
        len(result.inserted),
        len(result.duplicates),
        len(result.failures),
    )
    return result


__all__ = ["HashComputer", "DedupResult", "deduplicate"]
