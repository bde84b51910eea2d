import json
import os
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from takeout_organizer.config import OrganizerConfig
from takeout_organizer.exceptions import MetadataReadError, TimestampWriteError
from takeout_organizer.metadata.exiftool import ExifTool


class FakeExifTool(ExifTool):
    """
    Stands in for the exiftool binary.
    Tags are registered per file stem; the type is sniffed with Pillow
    (or '.mp4' for anything Pillow cannot open).
    """

    def __init__(self):
        super().__init__("exiftool-fake")
        self.tags = {}
        self.fail_read = set()
        self.fail_write = set()
        self.writes = []

    def set_tags(self, stem, **tags):
        self.tags.setdefault(stem, {}).update(tags)

    def _lookup(self, path: Path) -> dict:
        return self.tags.get(path.stem, {})

    def read_file_type(self, path: Path) -> str:
        if path.stem in self.fail_read:
            raise MetadataReadError("exiftool exited with 1")
        forced = self._lookup(path).get("FileType")
        if forced:
            return forced
        try:
            with Image.open(path) as im:
                return im.format
        except Exception:
            return "MP4" if path.suffix.lower() == ".mp4" else ""

    def read_tags(self, path: Path) -> dict:
        if path.stem in self.fail_read:
            raise MetadataReadError("exiftool exited with 1")
        return {"SourceFile": str(path), **self._lookup(path)}

    def write_timestamps(self, path: Path, dt: datetime) -> None:
        if path.stem in self.fail_write:
            raise TimestampWriteError("exiftool exited with 1")
        ts = dt.timestamp()
        os.utime(path, (ts, ts))
        self.writes.append((path, dt))


@pytest.fixture
def fake_exiftool():
    return FakeExifTool()


def make_image(path: Path, fmt: str = "JPEG") -> Path:
    """Writes a tiny real image; the format may differ from the extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with Image.new("RGB", (8, 8), color="red") as im:
        im.save(path, format=fmt)
    return path


def make_movie(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


def write_sidecar(media_path: Path, formatted: str) -> Path:
    sidecar = media_path.with_name(media_path.name + ".supplemental-metadata.json")
    sidecar.write_text(json.dumps({
        "title": media_path.name,
        "photoTakenTime": {"timestamp": "0", "formatted": formatted},
    }), encoding="utf-8")
    return sidecar


@pytest.fixture
def settings_factory(tmp_path):
    def _make(layout="type", **kwargs):
        src = tmp_path / "src"
        src.mkdir(exist_ok=True)
        return OrganizerConfig(source_root=src, output_root=tmp_path / "output", layout=layout, **kwargs)
    return _make
