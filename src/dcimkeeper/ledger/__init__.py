"""Hash ledger used to recognise content that was already archived."""

from .hashing import DedupResult, HashComputer, deduplicate
from .store import HashLedger, normalize_digest

__all__ = ["HashLedger", "normalize_digest", "HashComputer", "DedupResult", "deduplicate"]
