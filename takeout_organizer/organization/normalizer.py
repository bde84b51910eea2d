import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from .. import config
from ..exceptions import ExtensionRenameError
from ..metadata.exiftool import ExifTool
from ..models import MediaFile, DetectedType


class FileNormalizer:
    """
    Makes the extension match the detected content type and writes the
    resolved capture time back onto the file.
    """

    def __init__(self, exiftool: ExifTool):
        self.exiftool = exiftool
        # Serializes free-name selection between workers
        self._lock = threading.Lock()

    @staticmethod
    def canonical_ext(detected: DetectedType) -> Optional[str]:
        return config.TYPE_TO_EXT.get(detected.value)

    def fix_extension(self, media: MediaFile) -> Path:
        """
        Renames the file to its canonical extension if needed.
        Returns the (possibly new) path; media.path is updated in place.
        """
        target_ext = self.canonical_ext(media.detected_type)
        if target_ext is None or media.ext == target_ext:
            return media.path

        src = media.path
        with self._lock:
            dest = self._free_name(src.parent, src.stem, target_ext)
            try:
                src.rename(dest)
            except OSError as e:
                raise ExtensionRenameError(f"Rename to {dest.name} failed: {e}") from e

        logging.info(f"Renamed {src.name} -> {dest.name} ({media.detected_type.value})")
        media.path = dest
        return dest

    def write_timestamp(self, media: MediaFile, dt: datetime) -> None:
        """Raises TimestampWriteError when the tool rejects the write."""
        self.exiftool.write_timestamps(media.path, dt)
        media.timestamp = dt

    def _free_name(self, folder: Path, stem: str, ext: str) -> Path:
        candidate = folder / f"{stem}{ext}"
        counter = 1
        while candidate.exists():
            candidate = folder / f"{stem}_{counter}{ext}"
            counter += 1
        return candidate
