import json
import logging
from pathlib import Path
from typing import Optional, Iterator

from .. import config
from ..models import MediaFile, SidecarMetadata


def _candidates(media_path: Path) -> Iterator[Path]:
    for suffix in config.SIDECAR_SUFFIXES:
        yield media_path.with_name(media_path.name + suffix)


def find_sidecar(media: MediaFile) -> Optional[Path]:
    """
    Locates the JSON description file exported next to a media file.
    The pre-rename name is tried too, since sidecars never get renamed.
    """
    paths = [media.path]
    if media.original_path and media.original_path != media.path:
        paths.append(media.original_path)

    for p in paths:
        for candidate in _candidates(p):
            if candidate.is_file():
                return candidate
    return None


def load_sidecar(path: Path) -> SidecarMetadata:
    """
    Reads the capture-time string from a sidecar file.
    A sidecar that cannot be read yields an empty SidecarMetadata so that
    timestamp resolution falls through to the embedded metadata.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logging.debug(f"Unreadable sidecar {path}: {e}")
        return SidecarMetadata(path=path)

    if not isinstance(data, dict):
        return SidecarMetadata(path=path)

    for key in config.SIDECAR_TIME_KEYS:
        block = data.get(key)
        if isinstance(block, dict):
            formatted = block.get("formatted")
            if isinstance(formatted, str) and formatted.strip():
                return SidecarMetadata(path=path, taken_time=formatted.strip())

    return SidecarMetadata(path=path)


def read_sidecar(media: MediaFile) -> Optional[SidecarMetadata]:
    path = find_sidecar(media)
    if path is None:
        return None
    return load_sidecar(path)
