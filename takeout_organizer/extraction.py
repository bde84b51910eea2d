import shutil
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional

from tqdm import tqdm

from . import config


class ArchiveExtractor:
    """Unpacks export archives (.zip / .tgz) into the source tree."""

    def __init__(self, max_workers: int = config.DEFAULT_EXTRACT_WORKERS):
        self.max_workers = max_workers

    @staticmethod
    def find_archives(folder: Path) -> List[Path]:
        return sorted(
            p for p in folder.iterdir()
            if p.is_file() and p.name.lower().endswith(config.ARCHIVE_EXTS)
        )

    def extract_all(self, archive_dir: Path, dest: Path) -> Dict[Path, Optional[str]]:
        """
        Extracts every archive in archive_dir into dest.
        Returns archive -> None on success or the error message.
        """
        archives = self.find_archives(archive_dir)
        results: Dict[Path, Optional[str]] = {}
        if not archives:
            logging.info(f"No archives found in {archive_dir}")
            return results

        dest.mkdir(parents=True, exist_ok=True)
        logging.info(f"Extracting {len(archives)} archives with {self.max_workers} workers")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_archive = {
                executor.submit(shutil.unpack_archive, str(a), str(dest)): a
                for a in archives
            }
            for future in tqdm(as_completed(future_to_archive), total=len(archives), desc="Extracting"):
                archive = future_to_archive[future]
                try:
                    future.result()
                    results[archive] = None
                except Exception as e:
                    logging.error(f"Failed to extract {archive}: {e}")
                    results[archive] = str(e)
        return results
