import json
import logging
from pathlib import Path
from queue import SimpleQueue, Empty
from typing import Dict, List, Union

from .config import OrganizerConfig
from .models import ErrorRecord, ErrorKind

METADATA = "metadata"
SORTING = "sorting"
DUPLICATES = "duplicates"


class ErrorSink:
    """
    Collects per-file failures from worker threads.

    Workers push into thread-safe queues; the orchestrator drains them at
    each phase barrier and flushes them once at the end of the run into
    three JSON logs (metadata errors, sorting errors, duplicate notices).
    """

    def __init__(self):
        self._queues: Dict[str, SimpleQueue] = {
            METADATA: SimpleQueue(),
            SORTING: SimpleQueue(),
            DUPLICATES: SimpleQueue(),
        }
        self._records: Dict[str, List[ErrorRecord]] = {k: [] for k in self._queues}

    # --- Producers (called from workers) ---

    def metadata_error(self, path: Union[Path, str], message: str,
                       kind: ErrorKind = ErrorKind.METADATA_READ_FAILURE):
        logging.warning(f"[{kind.value}] {path}: {message}")
        self._queues[METADATA].put(ErrorRecord(str(path), message, kind))

    def sorting_error(self, path: Union[Path, str], message: str,
                      kind: ErrorKind = ErrorKind.RELOCATION_FAILURE):
        logging.warning(f"[{kind.value}] {path}: {message}")
        self._queues[SORTING].put(ErrorRecord(str(path), message, kind))

    def duplicate(self, path: Union[Path, str], message: str):
        logging.info(f"Duplicate name: {path}: {message}")
        self._queues[DUPLICATES].put(ErrorRecord(str(path), message, ErrorKind.DUPLICATE_RENAMED))

    # --- Consumer side ---

    def drain(self):
        """Moves everything queued so far into the collected records."""
        for category, q in self._queues.items():
            while True:
                try:
                    self._records[category].append(q.get_nowait())
                except Empty:
                    break

    @property
    def metadata_errors(self) -> List[ErrorRecord]:
        self.drain()
        return list(self._records[METADATA])

    @property
    def sorting_errors(self) -> List[ErrorRecord]:
        self.drain()
        return list(self._records[SORTING])

    @property
    def duplicates(self) -> List[ErrorRecord]:
        self.drain()
        return list(self._records[DUPLICATES])

    def flush(self, settings: OrganizerConfig) -> Dict[str, Path]:
        """
        Writes the three logs, replacing any earlier run's content.
        Empty categories are still written as [].
        """
        self.drain()
        targets = {
            METADATA: settings.metadata_log,
            SORTING: settings.sorting_log,
            DUPLICATES: settings.duplicates_log,
        }
        for category, path in targets.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            records = [r.to_json() for r in self._records[category]]
            with path.open("w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            logging.info(f"Wrote {len(records)} {category} entries to {path}")
        return targets
