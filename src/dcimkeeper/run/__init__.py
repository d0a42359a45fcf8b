"""Run orchestration: settings, locking, coordination and summaries."""

from .coordinator import Reporter, RunCoordinator, build_coordinator, check_source
from .lock import LOCK_FILENAME, RunLock
from .models import RunSettings, RunSummary

__all__ = [
    "Reporter",
    "RunCoordinator",
    "build_coordinator",
    "check_source",
    "LOCK_FILENAME",
    "RunLock",
    "RunSettings",
    "RunSummary",
]
