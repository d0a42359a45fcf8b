"""Deletion of retired files and reaping of empty directories."""

from .executor import SOURCE_LOST_REASON, DeletionExecutor
from .models import (
    DELETE_FAILED,
    DELETED,
    DIR_REMOVAL_FAILED,
    DIR_REMOVED,
    FAILURE_TAGS,
    FILE_TAGS,
    SIMULATED_DELETE,
    SIMULATED_DIR_REMOVAL,
    OutcomeLog,
    OutcomeRecord,
    OutcomeTag,
)
from .reaper import EmptyDirectoryReaper

__all__ = [
    "DeletionExecutor",
    "EmptyDirectoryReaper",
    "OutcomeLog",
    "OutcomeRecord",
    "OutcomeTag",
    "SOURCE_LOST_REASON",
    "SIMULATED_DELETE",
    "DELETED",
    "DELETE_FAILED",
    "DIR_REMOVED",
    "DIR_REMOVAL_FAILED",
    "SIMULATED_DIR_REMOVAL",
    "FILE_TAGS",
    "FAILURE_TAGS",
]
