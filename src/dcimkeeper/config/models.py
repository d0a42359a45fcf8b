"""Configuration models describing dcimkeeper settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TAG_PRECEDENCE = [
    "DateTimeOriginal",
    "CreateDate",
    "MediaCreateDate",
    "QuickTime:CreateDate",
]


class KeeperBaseModel(BaseModel):
    """Shared configuration for dcimkeeper Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class SourceSettings(KeeperBaseModel):
    """Location of the mounted media device.

    Attributes:
        mount_point: Directory where the device is mounted.
        dcim_folder: Folder beneath the mount point holding camera media.
    """

    mount_point: Optional[str] = None
    dcim_folder: str = "DCIM"


class BackupSettings(KeeperBaseModel):
    """Where backed-up media, archives and the hash ledger live.

    Attributes:
        root: Backup root directory.
        ledger_filename: Name of the hash ledger file inside the backup root.
        archive: Whether to pack each run's transfer into a tar.gz archive.
        sync_backend: Synchronizer used to copy new files off the device.
    """

    root: Optional[str] = None
    ledger_filename: str = "photo_hashes.txt"
    archive: bool = True
    sync_backend: Literal["copy", "rsync"] = "copy"


class RetentionSettings(KeeperBaseModel):
    """Settings that decide which on-device files are retired.

    Attributes:
        months: Retention window; files dated before now minus this many months are deleted.
        dry_run: Simulate deletions and ledger writes by default.
        tag_precedence: Metadata tags consulted, in order, for a capture date.
    """

    months: int = Field(default=12, ge=0)
    dry_run: bool = False
    tag_precedence: List[str] = Field(default_factory=lambda: list(DEFAULT_TAG_PRECEDENCE))


class ConcurrencySettings(KeeperBaseModel):
    """Worker pool sizing.

    Attributes:
        workers: Width shared by the hashing, dating and deletion pools.
        exiftool_timeout_seconds: Per-file limit for an exiftool invocation.
    """

    workers: int = Field(default=4, ge=1)
    exiftool_timeout_seconds: float = Field(default=30.0, gt=0)


class LoggingSettings(KeeperBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(KeeperBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class KeeperConfig(KeeperBaseModel):
    """Top-level configuration struct for dcimkeeper."""

    source: SourceSettings = Field(default_factory=SourceSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DEFAULT_TAG_PRECEDENCE",
    "KeeperBaseModel",
    "SourceSettings",
    "BackupSettings",
    "RetentionSettings",
    "ConcurrencySettings",
    "LoggingSettings",
    "CLIOptions",
    "KeeperConfig",
]
