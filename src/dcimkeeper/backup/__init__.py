"""Transfer and archival of media copied off the device."""

from .archiver import Archiver, TarArchiver
from .synchronizer import (
    CopySynchronizer,
    RsyncSynchronizer,
    SyncError,
    Synchronizer,
    SyncResult,
    build_synchronizer,
)

__all__ = [
    "Archiver",
    "TarArchiver",
    "Synchronizer",
    "SyncResult",
    "SyncError",
    "CopySynchronizer",
    "RsyncSynchronizer",
    "build_synchronizer",
]
