import os
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .. import config
from ..exceptions import SourceEnumerationError
from ..models import MediaFile


class MediaScanner:
    """Walks a media tree and yields the supported media files in it."""

    def __init__(self, skip_dirs: Optional[Set[Path]] = None):
        self.skip_dirs = skip_dirs or set()

    def scan(self, root: Path) -> List[MediaFile]:
        """
        Lists every supported media file under root.
        Raises SourceEnumerationError if root itself cannot be read.
        """
        if not root.is_dir():
            raise SourceEnumerationError(f"Source directory not found: {root}")
        try:
            # Fail early on an unreadable root; subfolders only warn
            with os.scandir(root):
                pass
        except OSError as e:
            raise SourceEnumerationError(f"Cannot read source directory {root}: {e}") from e

        files = [self._to_media_file(p) for p in self._iter_files(root) if self.is_media(p)]
        logging.info(f"Found {len(files)} media files under {root}")
        return files

    @staticmethod
    def is_media(path: Path) -> bool:
        if path.name.startswith("._"):
            return False
        return path.suffix.lower() in config.SUPPORTED_EXTS

    @staticmethod
    def _to_media_file(path: Path) -> MediaFile:
        return MediaFile(path=path, album_key=path.parent.name.strip().lower())

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()
            if self.skip_dirs and any(sd == current or sd in current.parents for sd in self.skip_dirs):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot read {current}: {e}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f
