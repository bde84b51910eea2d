"""
Exclusive lock files for album manifests.

A lock is a file created with O_CREAT | O_EXCL, so creation fails if any
other thread or process holds it. Acquisition retries with exponential
backoff and never deletes a lock it did not create. Locks left over from
a crashed run are cleared by remove_stale_lock during the run's Init,
before any merge worker exists.
"""
import os
import time
import logging
from pathlib import Path
from typing import Callable

from .. import config
from ..exceptions import LockTimeoutError


def remove_stale_lock(path: Path, stale_after: float = config.LOCK_STALE_SECONDS) -> bool:
    """
    Deletes the lock file at path if it is older than stale_after seconds.
    Not safe against concurrent acquirers; call it only while no merge runs.
    """
    try:
        age = time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return False
    if age < stale_after:
        return False

    logging.info(f"Removing stale lock {path} ({age:.0f}s old)")
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


class LockFile:
    def __init__(self,
                 path: Path,
                 max_attempts: int = config.LOCK_MAX_ATTEMPTS,
                 initial_delay: float = config.LOCK_INITIAL_DELAY,
                 backoff: float = config.LOCK_BACKOFF_FACTOR,
                 sleep: Callable[[float], None] = time.sleep):
        self.path = path
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff = backoff
        self._sleep = sleep
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Single attempt. True if this call created the lock file."""
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        try:
            os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        finally:
            os.close(fd)
        self._held = True
        return True

    def acquire(self):
        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            if self.try_acquire():
                return
            if attempt < self.max_attempts:
                logging.debug(f"Lock busy: {self.path.name}, retry {attempt}/{self.max_attempts} in {delay:.2f}s")
                self._sleep(delay)
                delay *= self.backoff

        raise LockTimeoutError(f"Could not lock {self.path} after {self.max_attempts} attempts")

    def release(self):
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        self._held = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
