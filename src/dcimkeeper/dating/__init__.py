"""Capture-date resolution from media metadata."""

from .models import MTIME_SOURCE, ResolvedDate
from .readers import (
    ChainedReader,
    ExiftoolReader,
    MetadataReader,
    PillowExifReader,
    default_reader,
)
from .resolver import MetadataResolver, parse_date_portion

__all__ = [
    "MTIME_SOURCE",
    "ResolvedDate",
    "MetadataReader",
    "ExiftoolReader",
    "PillowExifReader",
    "ChainedReader",
    "default_reader",
    "MetadataResolver",
    "parse_date_portion",
]
