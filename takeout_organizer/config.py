"""
Configuration constants and per-run settings for the takeout organizer.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# --- File Type Definitions ---
SUPPORTED_EXTS = {'.jpg', '.heic', '.png', '.mp4'}
MOVIE_EXTS = {'.mp4'}

# Detected type (exiftool FileType) -> canonical extension
TYPE_TO_EXT = {
    'JPEG': '.jpg',
    'HEIC': '.heic',
    'PNG': '.png',
    'MP4': '.mp4',
}

# --- Sidecar Files ---
# Checked in order; the first existing one wins
SIDECAR_SUFFIXES = ['.supplemental-metadata.json', '.json']
SIDECAR_TIME_KEYS = ['photoTakenTime', 'creationTime']

# --- Date Parsing ---
SIDECAR_DATE_FORMAT = "%d.%m.%Y, %H:%M:%S"
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# Tried in order after ISO-8601 when an exact format does not match
FALLBACK_DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y:%m:%d %H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y, %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%b %d, %Y, %I:%M:%S %p",
    "%d %b %Y, %H:%M:%S",
    "%Y:%m:%d",
    "%Y-%m-%d",
]

# Metadata fields consulted after the sidecar, highest priority first
EXIF_DATE_FIELDS = ['DateTimeOriginal', 'CreateDate', 'FileModifyDate']

# --- Workers ---
DEFAULT_MAX_WORKERS = 8
DEFAULT_EXTRACT_WORKERS = 4
ARCHIVE_EXTS = ('.zip', '.tgz', '.tar.gz')

# --- Album Manifests ---
LOCK_INITIAL_DELAY = 0.1  # seconds
LOCK_BACKOFF_FACTOR = 2
LOCK_MAX_ATTEMPTS = 5
LOCK_STALE_SECONDS = 300

# --- Organization ---
LAYOUT_FLAT = "type"
LAYOUT_YEAR = "year"
PICTURES_DIR = "pictures"
MOVIES_DIR = "movies"
DUPLICATE_PATTERN = "{stem}_duplicate_{n}{ext}"
DUPLICATE_MAX_N = 99999

# --- Error Logs ---
METADATA_ERRORS_LOG = "metadata_errors.json"
SORTING_ERRORS_LOG = "sorting_errors.json"
DUPLICATES_LOG = "duplicates.json"


@dataclass
class OrganizerConfig:
    """
    Settings for a single run. Built once (usually by the CLI) and handed
    to every component at construction.
    """
    source_root: Path
    output_root: Path
    layout: str = LAYOUT_FLAT
    albums_file: Optional[Path] = None
    album_dir: Optional[Path] = None
    log_dir: Optional[Path] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    extract_workers: int = DEFAULT_EXTRACT_WORKERS
    exiftool_path: str = "exiftool"
    album_names: set = field(default_factory=set)

    def __post_init__(self):
        if self.layout not in (LAYOUT_FLAT, LAYOUT_YEAR):
            raise ValueError(f"Unknown layout '{self.layout}' (expected '{LAYOUT_FLAT}' or '{LAYOUT_YEAR}')")
        self.source_root = Path(self.source_root)
        self.output_root = Path(self.output_root)
        if self.album_dir is None:
            self.album_dir = self.output_root / "albums"
        if self.log_dir is None:
            self.log_dir = self.output_root / "logs"

    @property
    def metadata_log(self) -> Path:
        return self.log_dir / METADATA_ERRORS_LOG

    @property
    def sorting_log(self) -> Path:
        return self.log_dir / SORTING_ERRORS_LOG

    @property
    def duplicates_log(self) -> Path:
        return self.log_dir / DUPLICATES_LOG
