"""Logging configuration for CLI runs."""

from __future__ import annotations

import contextlib
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from dcimkeeper.config.models import LoggingSettings

PACKAGE_LOGGER = "dcimkeeper"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def configure_logging(
    settings: LoggingSettings,
    *,
    log_file: Optional[Path] = None,
    console: bool = True,
    verbose: bool = False,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the package logger.

    Console records go to stderr through rich so JSON written to stdout
    stays parseable. Calling this again replaces the previous handlers.

    Args:
        settings: Level and rotation limits from configuration.
        log_file: Optional path for the rotating file handler.
        console: Whether to emit records to the terminal.
        verbose: Force DEBUG level on the console regardless of settings.

    Returns:
        logging.Logger: The configured package logger.
    """
    level = _coerce_level(settings.level)
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        with contextlib.suppress(OSError):
            handler.close()

    if console:
        rich_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(logging.DEBUG if verbose else level)
        logger.addHandler(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
            errors="backslashreplace",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if verbose else level)
    return logger


__all__ = ["configure_logging", "LOG_FORMAT", "LOG_DATEFMT", "PACKAGE_LOGGER"]
