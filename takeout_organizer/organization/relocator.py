import shutil
import random
import logging
import threading
from pathlib import Path
from typing import Optional, Set, Tuple

from .. import config
from ..config import OrganizerConfig
from ..exceptions import RelocationError, NoTimestampError, MetadataReadError
from ..metadata.exiftool import MetadataReader
from ..metadata.timestamps import TimestampResolver
from ..models import MediaFile, AlbumItem, AlbumUpdate
from ..reporting import ErrorSink


class Relocator:
    """
    Moves processed files into the output layout.

    Layouts:
      - 'type': {output}/pictures or {output}/movies
      - 'year': {output}/{year}/pictures or {output}/{year}/movies
    Name collisions get a random '_duplicate_N' suffix and a duplicate notice.
    """

    def __init__(self,
                 settings: OrganizerConfig,
                 sink: ErrorSink,
                 reader: Optional[MetadataReader] = None,
                 resolver: Optional[TimestampResolver] = None,
                 album_names: Optional[Set[str]] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings
        self.sink = sink
        self.reader = reader
        self.resolver = resolver or TimestampResolver()
        self.album_names = album_names if album_names is not None else set(settings.album_names)
        self.rng = rng or random.Random()

        # Destinations picked in this run but possibly not moved yet
        self._claimed: Set[Path] = set()
        self._claim_lock = threading.Lock()

    def destination_folder(self, media: MediaFile) -> Path:
        kind = config.MOVIES_DIR if media.ext in config.MOVIE_EXTS else config.PICTURES_DIR

        if self.settings.layout == config.LAYOUT_FLAT:
            return self.settings.output_root / kind

        # Year layout re-resolves the date with a fresh metadata read
        if self.reader is None:
            raise RelocationError("Year layout requires a metadata reader")
        try:
            dt = self.resolver.resolve_for(media, self.reader)
        except (NoTimestampError, MetadataReadError) as e:
            raise NoTimestampError(f"No date found: {e}") from e
        return self.settings.output_root / str(dt.year) / kind

    def relocate(self, media: MediaFile) -> Tuple[Path, Optional[AlbumUpdate]]:
        """
        Moves one file. Returns (destination, album update or None).
        Raises NoTimestampError or RelocationError; the file stays put then.
        """
        folder = self.destination_folder(media)
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RelocationError(f"Cannot create {folder}: {e}") from e

        src = media.path
        dest = self._claim(folder, src.name)
        try:
            shutil.move(str(src), str(dest))
        except (OSError, shutil.Error) as e:
            raise RelocationError(f"Move to {dest} failed: {e}") from e
        finally:
            with self._claim_lock:
                self._claimed.discard(dest)

        if dest.name != src.name:
            self.sink.duplicate(src, f"Renamed to {dest.name}: destination already had {src.name}")

        media.path = dest
        logging.debug(f"Moved {src} -> {dest}")
        return dest, self._album_update(media, dest)

    def _claim(self, folder: Path, filename: str) -> Path:
        """Picks a destination name that neither exists nor is claimed."""
        stem = Path(filename).stem
        ext = Path(filename).suffix
        with self._claim_lock:
            candidate = folder / filename
            while candidate.exists() or candidate in self._claimed:
                n = self.rng.randint(0, config.DUPLICATE_MAX_N)
                candidate = folder / config.DUPLICATE_PATTERN.format(stem=stem, n=n, ext=ext)
            self._claimed.add(candidate)
            return candidate

    def _album_update(self, media: MediaFile, dest: Path) -> Optional[AlbumUpdate]:
        key = media.album_key
        if not key or key not in self.album_names:
            return None

        rel = dest.relative_to(self.settings.output_root).as_posix()
        item = AlbumItem(name=dest.name, relative_path=rel, full_path=str(dest))
        return AlbumUpdate(collection=key, item=item)
