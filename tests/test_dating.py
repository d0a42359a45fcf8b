"""Tests for capture-date resolution."""

import json
import os
import subprocess
from datetime import date, datetime
from pathlib import Path
from typing import Sequence

import pytest
from PIL import ExifTags, Image

from dcimkeeper.dating import (
    MTIME_SOURCE,
    ChainedReader,
    ExiftoolReader,
    MetadataResolver,
    PillowExifReader,
    parse_date_portion,
)


class StubReader:
    """Reader returning canned tag values and recording each query."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values = values or {}
        self.queries: list[list[str]] = []

    def read_first(self, path: Path, tags: Sequence[str]):
        self.queries.append(list(tags))
        for tag in tags:
            if self.values.get(tag):
                return tag, self.values[tag]
        return None


def _touch(path: Path, when: datetime) -> Path:
    path.write_text("data", encoding="utf-8")
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))
    return path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2023:07:14 10:22:31", date(2023, 7, 14)),
        ("2023-07-14T10:22:31+02:00", date(2023, 7, 14)),
        ("2023/7/4", date(2023, 7, 4)),
        ("  2019.12.31 23:59:59Z", date(2019, 12, 31)),
        ("0000:00:00 00:00:00", None),
        ("2023:02:30 00:00:00", None),
        ("not a date", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date_portion(raw: str | None, expected: date | None) -> None:
    assert parse_date_portion(raw) == expected


def test_resolver_uses_first_tag_in_precedence(tmp_path: Path) -> None:
    path = _touch(tmp_path / "IMG_0001.JPG", datetime(2024, 1, 1, 12))
    reader = StubReader({"CreateDate": "2021:03:04 05:06:07", "MediaCreateDate": "2020:01:01"})

    resolved = MetadataResolver(reader).resolve(path)

    assert resolved is not None
    assert resolved.value == date(2021, 3, 4)
    assert resolved.source == "CreateDate"
    assert resolved.from_metadata


def test_resolver_skips_unparseable_tag_and_tries_later_ones(tmp_path: Path) -> None:
    path = _touch(tmp_path / "IMG_0002.MOV", datetime(2024, 1, 1, 12))
    reader = StubReader({"DateTimeOriginal": "garbage", "MediaCreateDate": "2022:08:09 00:00:00"})

    resolved = MetadataResolver(reader).resolve(path)

    assert resolved is not None
    assert resolved.value == date(2022, 8, 9)
    assert resolved.source == "MediaCreateDate"
    assert reader.queries[1][0] == "CreateDate"


def test_resolver_falls_back_to_mtime(tmp_path: Path) -> None:
    path = _touch(tmp_path / "IMG_0003.PNG", datetime(2022, 5, 6, 12))

    resolved = MetadataResolver(StubReader()).resolve(path)

    assert resolved is not None
    assert resolved.value == date(2022, 5, 6)
    assert resolved.source == MTIME_SOURCE
    assert not resolved.from_metadata


def test_resolver_returns_none_without_metadata_or_stat(tmp_path: Path) -> None:
    resolved = MetadataResolver(StubReader()).resolve(tmp_path / "vanished.jpg")

    assert resolved is None


def test_resolver_honours_custom_precedence(tmp_path: Path) -> None:
    path = _touch(tmp_path / "clip.mp4", datetime(2024, 1, 1, 12))
    reader = StubReader({"DateTimeOriginal": "2020:01:01", "QuickTime:CreateDate": "2019:02:02"})

    resolved = MetadataResolver(reader, ["QuickTime:CreateDate", "DateTimeOriginal"]).resolve(path)

    assert resolved is not None
    assert resolved.value == date(2019, 2, 2)


def test_chained_reader_returns_first_answer(tmp_path: Path) -> None:
    empty = StubReader()
    answering = StubReader({"CreateDate": "2020:01:01"})
    never = StubReader({"CreateDate": "1999:01:01"})

    found = ChainedReader([empty, answering, never]).read_first(tmp_path / "x", ["CreateDate"])

    assert found == ("CreateDate", "2020:01:01")
    assert never.queries == []


def test_exiftool_reader_without_executable_returns_none(tmp_path: Path) -> None:
    reader = ExiftoolReader(executable=None)
    reader.executable = None

    assert not reader.available
    assert reader.read_first(tmp_path / "a.jpg", ["DateTimeOriginal"]) is None


def test_exiftool_reader_parses_json_and_strips_group(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured: dict[str, list[str]] = {}

    def _fake_run(command, **_: object):
        captured["command"] = command
        payload = [{"SourceFile": "a.mov", "CreateDate": "2021:05:06 10:00:00"}]
        return subprocess.CompletedProcess(command, 0, json.dumps(payload).encode(), b"")

    monkeypatch.setattr("dcimkeeper.dating.readers.subprocess.run", _fake_run)
    reader = ExiftoolReader(executable="/usr/bin/exiftool")

    found = reader.read_first(tmp_path / "a.mov", ["DateTimeOriginal", "QuickTime:CreateDate"])

    assert found == ("QuickTime:CreateDate", "2021:05:06 10:00:00")
    assert "-QuickTime:CreateDate" in captured["command"]
    assert "-json" in captured["command"]


def test_exiftool_reader_treats_timeout_as_absence(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _timeout(command, **kwargs: object):
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout", 1))

    monkeypatch.setattr("dcimkeeper.dating.readers.subprocess.run", _timeout)
    reader = ExiftoolReader(executable="/usr/bin/exiftool", timeout=0.1)

    assert reader.read_first(tmp_path / "a.mov", ["DateTimeOriginal"]) is None


def test_pillow_reader_reads_exif_date(tmp_path: Path) -> None:
    path = tmp_path / "IMG_0100.JPG"
    exif = Image.Exif()
    exif[ExifTags.Base.DateTimeOriginal] = "2018:09:10 11:12:13"
    Image.new("RGB", (4, 4), "white").save(path, exif=exif)

    found = PillowExifReader().read_first(path, ["DateTimeOriginal", "CreateDate"])

    assert found == ("DateTimeOriginal", "2018:09:10 11:12:13")


def test_pillow_reader_ignores_non_images(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    assert PillowExifReader().read_first(path, ["DateTimeOriginal"]) is None
    assert PillowExifReader().read_first(path, ["MediaCreateDate"]) is None
