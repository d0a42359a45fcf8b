"""Exceptions that abort a dcimkeeper run."""


class DcimKeeperError(Exception):
    """Base exception for fatal run conditions."""


class SourceUnavailableError(DcimKeeperError):
    """Raised when the media root is missing or cannot be listed at run start."""


class LedgerError(DcimKeeperError):
    """Raised when the hash ledger cannot be read or appended to."""


class RunLockedError(DcimKeeperError):
    """Raised when another run already holds the backup root lock."""
