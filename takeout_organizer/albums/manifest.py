import os
import re
import json
import logging
import tempfile
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Set, Union

from .. import config
from ..exceptions import ManifestMergeError, AlbumListError
from ..models import AlbumItem, AlbumUpdate
from .locking import LockFile, remove_stale_lock

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def normalize_name(name: str) -> str:
    return name.strip().lower()


def load_collection_names(path: Path) -> Set[str]:
    """One album name per line; blank lines are ignored."""
    if not path or not path.is_file():
        raise AlbumListError(f"Album list not found: {path}")
    try:
        with path.open("r", encoding="utf-8-sig") as f:
            return {normalize_name(line) for line in f if line.strip()}
    except OSError as e:
        raise AlbumListError(f"Cannot read album list {path}: {e}") from e


class CollectionManifestStore:
    """
    One JSON array file per album, holding {name, relativePath, fullPath}.

    Merges for the same album serialize through a lock file next to the
    manifest; merges for different albums are independent.
    """

    def __init__(self,
                 album_dir: Path,
                 max_attempts: int = config.LOCK_MAX_ATTEMPTS,
                 initial_delay: float = config.LOCK_INITIAL_DELAY,
                 stale_after: float = config.LOCK_STALE_SECONDS):
        self.album_dir = album_dir
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.stale_after = stale_after

    def manifest_path(self, collection: str) -> Path:
        safe = _UNSAFE_CHARS.sub("_", normalize_name(collection)) or "_"
        return self.album_dir / f"{safe}.json"

    def _lock_for(self, collection: str) -> LockFile:
        manifest = self.manifest_path(collection)
        return LockFile(
            manifest.with_name(manifest.name + ".lock"),
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
        )

    # --- Read / Init ---

    def load(self, collection: str) -> List[AlbumItem]:
        return [AlbumItem.from_json(d) for d in self._read_raw(self.manifest_path(collection))]

    def clear_stale_locks(self) -> List[Path]:
        """Removes lock files left by crashed runs. Call before merging starts."""
        if not self.album_dir.is_dir():
            return []
        return [p for p in sorted(self.album_dir.glob("*.json.lock"))
                if remove_stale_lock(p, self.stale_after)]

    def check_distinct(self, names: Iterable[str]):
        """Raises AlbumListError if two album names map to the same manifest file."""
        by_path: Dict[Path, Set[str]] = defaultdict(set)
        for name in names:
            if name.strip():
                by_path[self.manifest_path(name)].add(normalize_name(name))

        clashes = sorted(", ".join(sorted(n)) for n in by_path.values() if len(n) > 1)
        if clashes:
            raise AlbumListError(f"Album names share a manifest file: {'; '.join(clashes)}")

    def init_collections(self, names: Iterable[str]) -> List[Path]:
        """
        Creates an empty manifest for every album that has none yet.
        Raises AlbumListError for names that would share a manifest.
        """
        names = list(names)
        self.check_distinct(names)
        self.album_dir.mkdir(parents=True, exist_ok=True)
        created = []
        for name in sorted({normalize_name(n) for n in names if n.strip()}):
            path = self.manifest_path(name)
            if path.exists():
                continue
            self._write_raw(path, [])
            created.append(path)
        logging.info(f"Initialized {len(created)} album manifests in {self.album_dir}")
        return created

    # --- Merge ---

    def merge_items(self, collection: str, items: Iterable[AlbumItem]) -> int:
        """
        Adds items whose fullPath is not in the manifest yet.
        Returns how many were added. Raises ManifestMergeError (including
        LockTimeoutError once retries are used up).
        """
        items = list(items)
        self.album_dir.mkdir(parents=True, exist_ok=True)
        path = self.manifest_path(collection)

        with self._lock_for(collection):
            current = self._read_raw(path)
            known = {d.get("fullPath") for d in current}

            new = []
            for item in items:
                if item.full_path in known:
                    continue
                known.add(item.full_path)
                new.append(item.to_json())

            if new:
                self._write_raw(path, current + new)

        logging.debug(f"Album '{collection}': {len(new)} new of {len(items)} items")
        return len(new)

    def merge_updates(self, updates: Iterable[AlbumUpdate], max_workers: int = config.DEFAULT_MAX_WORKERS) -> Dict[str, Union[int, Exception]]:
        """
        Groups updates by album and merges each album concurrently.
        Returns album -> number of items added, or the exception that stopped it.
        """
        grouped: Dict[str, List[AlbumItem]] = defaultdict(list)
        for update in updates:
            grouped[update.collection].append(update.item)

        results: Dict[str, Union[int, Exception]] = {}
        if not grouped:
            return results

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            future_to_album = {
                pool.submit(self.merge_items, name, items): name
                for name, items in grouped.items()
            }
            for future in as_completed(future_to_album):
                name = future_to_album[future]
                try:
                    results[name] = future.result()
                except Exception as e:
                    logging.error(f"Failed to merge album '{name}': {e}")
                    results[name] = e
        return results

    # --- File helpers ---

    def _read_raw(self, path: Path) -> List[dict]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ManifestMergeError(f"Cannot read {path}: {e}") from e

        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ManifestMergeError(f"Corrupt manifest {path}: {e}") from e

        # A single object is what some writers produce for one-item arrays
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ManifestMergeError(f"Manifest {path} is not a JSON array")
        return [d for d in data if isinstance(d, dict)]

    def _write_raw(self, path: Path, data: List[dict]):
        """Writes via a temp file + os.replace so readers never see half a file."""
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent,
                                             suffix=".tmp", encoding="utf-8") as tmp:
                tmp_path = tmp.name
                json.dump(data, tmp, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ManifestMergeError(f"Cannot write {path}: {e}") from e
