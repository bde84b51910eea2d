from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any


class DetectedType(str, Enum):
    JPEG = "JPEG"
    HEIC = "HEIC"
    PNG = "PNG"
    MP4 = "MP4"
    UNKNOWN = "unknown"

    @classmethod
    def from_tool(cls, value: Optional[str]) -> "DetectedType":
        """Maps an exiftool FileType string to a known type."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class ErrorKind(str, Enum):
    METADATA_READ_FAILURE = "MetadataReadFailure"
    NO_TIMESTAMP_FOUND = "NoTimestampFound"
    TIMESTAMP_WRITE_FAILURE = "TimestampWriteFailure"
    EXTENSION_RENAME_FAILURE = "ExtensionRenameFailure"
    RELOCATION_FAILURE = "RelocationFailure"
    MANIFEST_MERGE_FAILURE = "ManifestMergeFailure"
    DUPLICATE_RENAMED = "DuplicateRenamed"


@dataclass
class MediaFile:
    """
    A media file discovered in the source tree.
    `path` follows the file through the extension fix and the relocation.
    """
    path: Path
    album_key: str              # lowercased name of the containing folder
    original_path: Optional[Path] = None
    detected_type: DetectedType = DetectedType.UNKNOWN
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.original_path is None:
            self.original_path = self.path

    @property
    def ext(self) -> str:
        return self.path.suffix.lower()


@dataclass(frozen=True)
class SidecarMetadata:
    path: Path
    taken_time: Optional[str] = None


@dataclass(frozen=True)
class ExtractedMetadata:
    """Tags returned by the metadata tool for one file."""
    file_type: Optional[str] = None
    date_time_original: Optional[str] = None
    create_date: Optional[str] = None
    file_modify_date: Optional[str] = None

    @classmethod
    def from_tags(cls, tags: Dict[str, Any]) -> "ExtractedMetadata":
        def _str(key):
            val = tags.get(key)
            return str(val) if val not in (None, "") else None

        return cls(
            file_type=_str("FileType"),
            date_time_original=_str("DateTimeOriginal"),
            create_date=_str("CreateDate"),
            file_modify_date=_str("FileModifyDate"),
        )

    def date_fields(self):
        """(field name, raw value) pairs in resolution priority order."""
        return [
            ("DateTimeOriginal", self.date_time_original),
            ("CreateDate", self.create_date),
            ("FileModifyDate", self.file_modify_date),
        ]


@dataclass(frozen=True)
class ErrorRecord:
    path: str
    message: str
    kind: ErrorKind = ErrorKind.RELOCATION_FAILURE

    def to_json(self) -> Dict[str, str]:
        return {"Path": self.path, "Message": self.message}


@dataclass(frozen=True)
class AlbumItem:
    name: str
    relative_path: str
    full_path: str

    def to_json(self) -> Dict[str, str]:
        return {"name": self.name, "relativePath": self.relative_path, "fullPath": self.full_path}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "AlbumItem":
        return cls(
            name=data.get("name", ""),
            relative_path=data.get("relativePath", ""),
            full_path=data.get("fullPath", ""),
        )


@dataclass(frozen=True)
class AlbumUpdate:
    collection: str
    item: AlbumItem


@dataclass
class RunSummary:
    files_seen: int = 0
    files_relocated: int = 0
    album_items_merged: int = 0
    cancelled: bool = False
    log_paths: Dict[str, Path] = field(default_factory=dict)
