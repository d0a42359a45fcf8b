"""Persist run summaries and outcome records for later review."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from dcimkeeper.run.models import RunSummary

LOGGER = logging.getLogger(__name__)

DEFAULT_REPORTS_DIRNAME = "reports"


class JsonReporter:
    """Write each run's summary and outcome records as a JSON document.

    Reports land in ``<backup_root>/reports/run_<timestamp>.json``. Paths are
    stored as JSON strings, so filenames containing whitespace or newlines
    survive intact. The document is written as ASCII: bytes in a filename
    that are not valid UTF-8 are kept as ``\\udcXX`` escapes and map back to
    the same on-disk name when the report is loaded.
    """

    def __init__(self, backup_root: Path, dirname: str = DEFAULT_REPORTS_DIRNAME) -> None:
        self.directory = backup_root / dirname
        self.last_path: Path | None = None

    def report(self, summary: RunSummary) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        stamp = summary.started_at.strftime("%Y-%m-%d_%H-%M-%S")
        suffix = "_dry-run" if summary.dry_run else ""
        path = self.directory / f"run_{stamp}{suffix}.json"
        payload = summary.model_dump(mode="json")
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="ascii")
        LOGGER.info("Wrote run report to %s", path)
        self.last_path = path
        return path

    def load(self, path: Path) -> RunSummary:
        return RunSummary.model_validate(json.loads(path.read_text(encoding="ascii")))


__all__ = ["JsonReporter", "DEFAULT_REPORTS_DIRNAME"]
