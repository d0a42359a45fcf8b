"""Run settings and the aggregate summary handed to reporters."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from dcimkeeper.cleanup import OutcomeRecord
from dcimkeeper.config import ConfigError, KeeperConfig
from dcimkeeper.config.models import DEFAULT_TAG_PRECEDENCE


class RunSettings(BaseModel):
    """Inputs for one backup-and-retire run.

    Attributes:
        source_root: Media root on the mounted device (usually ``<mount>/DCIM``).
        backup_root: Directory receiving staging copies, archives, reports and logs.
        ledger_path: Persisted hash ledger location.
        dry_run: Simulate every mutation of the device and the ledger.
        retention_months: Files dated before run start minus this many months are retired.
        workers: Width of the hashing, dating and deletion pools.
        tag_precedence: Metadata tags consulted in order for a capture date.
        archive: Pack the staging directory into a tarball after a real run.
    """

    source_root: Path
    backup_root: Path
    ledger_path: Path
    dry_run: bool = False
    retention_months: int = Field(default=12, ge=0)
    workers: int = Field(default=4, ge=1)
    tag_precedence: List[str] = Field(default_factory=lambda: list(DEFAULT_TAG_PRECEDENCE))
    archive: bool = True

    @classmethod
    def from_config(cls, config: KeeperConfig) -> "RunSettings":
        """Build run settings from loaded configuration.

        Raises:
            ConfigError: If the mount point or backup root is not configured.
        """
        if not config.source.mount_point:
            raise ConfigError("source.mount_point is not configured.")
        if not config.backup.root:
            raise ConfigError("backup.root is not configured.")

        mount = Path(config.source.mount_point).expanduser()
        backup_root = Path(config.backup.root).expanduser()
        source_root = mount / config.source.dcim_folder if config.source.dcim_folder else mount
        return cls(
            source_root=source_root,
            backup_root=backup_root,
            ledger_path=backup_root / config.backup.ledger_filename,
            dry_run=config.retention.dry_run,
            retention_months=config.retention.months,
            workers=config.concurrency.workers,
            tag_precedence=list(config.retention.tag_precedence),
            archive=config.backup.archive,
        )


class RunSummary(BaseModel):
    """Aggregate counts and the ordered outcome records of a run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    dry_run: bool
    source_root: Path
    cutoff: date
    retention_months: int
    archive_path: Optional[Path] = None
    backed_up: int = 0
    deduplicated: int = 0
    hash_failures: int = 0
    deletion_candidates: int = 0
    deleted: int = 0
    simulated: int = 0
    failed: int = 0
    directories_reaped: int = 0
    directory_failures: int = 0
    skipped_undated: int = 0
    errors: List[str] = Field(default_factory=list)
    outcomes: List[OutcomeRecord] = Field(default_factory=list)

    def counts(self) -> dict[str, Any]:
        """Return the headline metrics in display order."""
        return {
            "dry_run": self.dry_run,
            "backed_up": self.backed_up,
            "deduplicated": self.deduplicated,
            "deletion_candidates": self.deletion_candidates,
            "deleted": self.deleted,
            "simulated": self.simulated,
            "failed": self.failed,
            "directories_reaped": self.directories_reaped,
            "skipped_undated": self.skipped_undated,
            "errors": len(self.errors),
        }


__all__ = ["RunSettings", "RunSummary"]
