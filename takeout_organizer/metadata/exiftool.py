import json
import logging
import os
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Tuple

from ..exceptions import MetadataReadError, TimestampWriteError
from ..models import DetectedType, ExtractedMetadata
from .dates import format_exif_date

# File-system creation time is only writable where the OS keeps one
_CAN_WRITE_CREATE_DATE = os.name == "nt" or sys.platform == "darwin"


class ExifTool:
    """
    Wraps the 'exiftool' command line utility.
    Must be installed and on the system PATH (or given explicitly).
    One process is started per call; callers bound the fan-out.
    """

    def __init__(self, executable: str = "exiftool"):
        self.executable = executable

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [self.executable, *args]
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                stdin=subprocess.DEVNULL,
                check=False,
            )
        except FileNotFoundError as e:
            raise MetadataReadError(f"exiftool not found: {self.executable}") from e

    def read_file_type(self, path: Path) -> str:
        """Returns the tool's FileType for the content (e.g. 'JPEG')."""
        # -s3 = value only, no tag name
        proc = self._run(["-s3", "-FileType", str(path)])
        if proc.returncode != 0:
            raise MetadataReadError(f"FileType query failed ({proc.returncode}): {proc.stderr.strip()}")
        return proc.stdout.strip()

    def read_tags(self, path: Path) -> Dict[str, Any]:
        """Structured date/type extraction as a dict of tag -> value."""
        # -j = JSON output
        proc = self._run([
            "-j",
            "-FileType",
            "-DateTimeOriginal",
            "-CreateDate",
            "-FileModifyDate",
            str(path),
        ])
        if proc.returncode != 0:
            raise MetadataReadError(f"Metadata query failed ({proc.returncode}): {proc.stderr.strip()}")

        try:
            data = json.loads(proc.stdout)
        except ValueError as e:
            raise MetadataReadError(f"Malformed exiftool output: {e}") from e

        if isinstance(data, list):
            if not data:
                return {}
            data = data[0]
        if not isinstance(data, dict):
            raise MetadataReadError("Unexpected exiftool output shape")
        return data

    def write_timestamps(self, path: Path, dt: datetime) -> None:
        """
        Sets creation and modification time in a single exiftool call.

        FileCreateDate is only writable on Windows and macOS. Elsewhere the
        file system keeps no settable creation time, so only FileModifyDate
        is written.
        """
        stamp = format_exif_date(dt)
        args = ["-overwrite_original", f"-FileModifyDate={stamp}"]
        if _CAN_WRITE_CREATE_DATE:
            args.append(f"-FileCreateDate={stamp}")
        args.append(str(path))

        try:
            proc = self._run(args)
        except MetadataReadError as e:
            raise TimestampWriteError(str(e)) from e
        if proc.returncode != 0:
            raise TimestampWriteError(f"exiftool exited with {proc.returncode}: {proc.stderr.strip()}")


class MetadataReader:
    """
    Reads the detected type and candidate date fields for one file.
    The two exiftool queries are independent, so they run side by side.
    """

    def __init__(self, exiftool: ExifTool):
        self.exiftool = exiftool

    def read(self, path: Path) -> Tuple[DetectedType, ExtractedMetadata]:
        with ThreadPoolExecutor(max_workers=2) as pool:
            type_future = pool.submit(self.exiftool.read_file_type, path)
            tags_future = pool.submit(self.exiftool.read_tags, path)
            try:
                file_type = type_future.result()
                tags = tags_future.result()
            except MetadataReadError:
                raise
            except Exception as e:
                raise MetadataReadError(f"Metadata read failed: {e}") from e

        detected = DetectedType.from_tool(file_type)
        logging.debug(f"{path.name}: detected {detected.value}")
        return detected, ExtractedMetadata.from_tags(tags)
