import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from queue import SimpleQueue, Empty
from typing import List, Optional

from tqdm import tqdm

from . import config
from .config import OrganizerConfig
from .albums.manifest import CollectionManifestStore, load_collection_names
from .exceptions import (
    MetadataReadError, NoTimestampError, TimestampWriteError,
    ExtensionRenameError, RelocationError, OutputSetupError,
)
from .metadata.exiftool import ExifTool, MetadataReader
from .metadata.sidecar import read_sidecar
from .metadata.timestamps import TimestampResolver
from .models import MediaFile, AlbumUpdate, ErrorKind, RunSummary
from .organization.normalizer import FileNormalizer
from .organization.relocator import Relocator
from .reporting import ErrorSink
from .scanning.filesystem import MediaScanner


class TakeoutOrganizerApp:
    """
    Runs the pipeline, one phase at a time:
      1. Metadata fix (type check, timestamp, extension) - parallel
      2. Relocation into the output layout - parallel
      3. Album manifest merge - parallel across albums
      4. Error log flush
    A file failing in any phase never stops the phase.
    """

    def __init__(self,
                 settings: OrganizerConfig,
                 exiftool: Optional[ExifTool] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings
        self.exiftool = exiftool or ExifTool(settings.exiftool_path)
        self.reader = MetadataReader(self.exiftool)
        self.resolver = TimestampResolver()
        self.normalizer = FileNormalizer(self.exiftool)
        self.sink = ErrorSink()
        self.store = CollectionManifestStore(settings.album_dir)
        self.album_names = set(settings.album_names)
        self.rng = rng

        self._cancel = threading.Event()
        self._album_updates: SimpleQueue = SimpleQueue()

    def cancel(self):
        """Stops handing out new files; files already handled stay as they are."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self) -> RunSummary:
        """
        Raises SetupError subclasses for structural problems only.
        """
        summary = RunSummary()

        # --- Init ---
        self._prepare_output()
        if self.settings.albums_file:
            self.album_names |= load_collection_names(self.settings.albums_file)
        if self.album_names:
            # Single-threaded here, before any merge can hold a lock
            self.store.clear_stale_locks()
            self.store.init_collections(self.album_names)

        scanner = MediaScanner(skip_dirs=self._skip_dirs())
        files = scanner.scan(self.settings.source_root)
        summary.files_seen = len(files)

        try:
            # --- Phase 1: Metadata ---
            self._run_phase(self._fix_metadata, files, "Fixing metadata")
            self.sink.drain()

            # --- Phase 2: Relocation ---
            relocator = Relocator(
                self.settings,
                self.sink,
                reader=self.reader,
                resolver=self.resolver,
                album_names=self.album_names,
                rng=self.rng,
            )
            if not self.cancelled:
                moved = self._run_phase(lambda m: self._relocate(relocator, m), files, "Relocating")
                summary.files_relocated = sum(1 for ok in moved if ok)
            self.sink.drain()

            # --- Phase 3: Album manifests ---
            if not self.cancelled:
                summary.album_items_merged = self._merge_albums(self._drain_updates())
        finally:
            # --- Phase 4: Logs (also after an interrupt) ---
            summary.cancelled = self.cancelled
            summary.log_paths = self.sink.flush(self.settings)

        logging.info(
            f"Done. {summary.files_relocated}/{summary.files_seen} files relocated, "
            f"{summary.album_items_merged} album entries added."
        )
        return summary

    # --- Setup ---

    def _prepare_output(self):
        s = self.settings
        required = [s.output_root, s.log_dir]
        if s.albums_file or self.album_names:
            required.append(s.album_dir)
        if s.layout == config.LAYOUT_FLAT:
            required += [s.output_root / config.PICTURES_DIR, s.output_root / config.MOVIES_DIR]

        for folder in required:
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OutputSetupError(f"Cannot create output folder {folder}: {e}") from e

    def _skip_dirs(self) -> set:
        # Output nested inside the source must not be re-scanned
        src = self.settings.source_root.resolve()
        out = self.settings.output_root.resolve()
        if out == src or src in out.parents:
            return {out}
        return set()

    def _run_phase(self, func, files: List[MediaFile], desc: str) -> list:
        """
        Blocks until every file in the phase is done (phase barrier).
        On Ctrl-C the run is cancelled and files not yet started are dropped;
        files already in a worker finish before the interrupt propagates.
        """
        pool = ThreadPoolExecutor(max_workers=self.settings.max_workers)
        try:
            return list(tqdm(pool.map(func, files), total=len(files), desc=desc))
        except KeyboardInterrupt:
            logging.warning(f"{desc}: interrupted, cancelling remaining files")
            self.cancel()
            raise
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    # --- Per-file work ---

    def _fix_metadata(self, media: MediaFile) -> bool:
        if self.cancelled:
            return False
        try:
            return self._fix_one(media)
        except Exception as e:
            self.sink.metadata_error(media.path, f"Unexpected error: {e}", ErrorKind.METADATA_READ_FAILURE)
            return False

    def _fix_one(self, media: MediaFile) -> bool:
        path = media.path
        try:
            detected, extracted = self.reader.read(path)
        except MetadataReadError as e:
            self.sink.metadata_error(path, str(e), ErrorKind.METADATA_READ_FAILURE)
            return False
        media.detected_type = detected

        timestamp = None
        try:
            timestamp, source = self.resolver.resolve(read_sidecar(media), extracted)
            logging.debug(f"{path.name}: {timestamp} from {source}")
        except NoTimestampError as e:
            self.sink.metadata_error(path, str(e), ErrorKind.NO_TIMESTAMP_FOUND)

        try:
            self.normalizer.fix_extension(media)
        except ExtensionRenameError as e:
            self.sink.metadata_error(path, str(e), ErrorKind.EXTENSION_RENAME_FAILURE)

        if timestamp is None:
            return False
        try:
            self.normalizer.write_timestamp(media, timestamp)
        except TimestampWriteError as e:
            self.sink.metadata_error(media.path, str(e), ErrorKind.TIMESTAMP_WRITE_FAILURE)
            return False
        return True

    def _relocate(self, relocator: Relocator, media: MediaFile) -> bool:
        if self.cancelled:
            return False

        path = media.path
        try:
            _, update = relocator.relocate(media)
        except NoTimestampError as e:
            self.sink.sorting_error(path, str(e), ErrorKind.NO_TIMESTAMP_FOUND)
            return False
        except RelocationError as e:
            self.sink.sorting_error(path, str(e), ErrorKind.RELOCATION_FAILURE)
            return False
        except Exception as e:
            self.sink.sorting_error(path, f"Unexpected error: {e}", ErrorKind.RELOCATION_FAILURE)
            return False

        if update is not None:
            self._album_updates.put(update)
        return True

    # --- Albums ---

    def _drain_updates(self) -> List[AlbumUpdate]:
        updates = []
        while True:
            try:
                updates.append(self._album_updates.get_nowait())
            except Empty:
                return updates

    def _merge_albums(self, updates: List[AlbumUpdate]) -> int:
        if not updates:
            return 0

        logging.info(f"Merging {len(updates)} album entries")
        results = self.store.merge_updates(updates, max_workers=self.settings.max_workers)
        merged = 0
        for name, result in results.items():
            if isinstance(result, Exception):
                self.sink.sorting_error(self.store.manifest_path(name), str(result), ErrorKind.MANIFEST_MERGE_FAILURE)
            else:
                merged += result
        return merged
