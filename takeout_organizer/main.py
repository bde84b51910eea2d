import argparse
import logging
import sys
from pathlib import Path

from . import config
from .albums.manifest import CollectionManifestStore, load_collection_names
from .config import OrganizerConfig
from .core import TakeoutOrganizerApp
from .exceptions import SetupError
from .extraction import ArchiveExtractor


def setup_logging(dest_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the destination."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create dest root if it doesn't exist so we can log there
    dest_root.mkdir(parents=True, exist_ok=True)
    log_file = dest_root / "organizer.log"

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Takeout Organizer: fix dates/extensions and sort exported media")

    p.add_argument("src", type=Path, help="Extracted export folder to process")
    p.add_argument("dest", type=Path, help="Output root for the sorted files")

    p.add_argument("--layout", choices=[config.LAYOUT_FLAT, config.LAYOUT_YEAR], default=config.LAYOUT_FLAT,
                   help="'type' = pictures/movies, 'year' = YEAR/pictures|movies")
    p.add_argument("--albums", type=Path, default=None, help="Text file with one album name per line")
    p.add_argument("--album-dir", type=Path, default=None, help="Where album manifests live (default: dest/albums)")
    p.add_argument("--init-albums", action="store_true", help="Only create empty album manifests and exit")
    p.add_argument("--archives", type=Path, default=None, help="Folder of export archives to extract into src first")
    p.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS, help="Parallel file workers")
    p.add_argument("--exiftool", default="exiftool", help="Path to the exiftool executable")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def build_config(args) -> OrganizerConfig:
    return OrganizerConfig(
        source_root=args.src.resolve(),
        output_root=args.dest.resolve(),
        layout=args.layout,
        albums_file=args.albums,
        album_dir=args.album_dir,
        max_workers=max(1, args.workers),
        exiftool_path=args.exiftool,
    )


def main(argv=None):
    args = parse_args(argv)
    settings = build_config(args)

    setup_logging(settings.output_root, args.verbose)

    logging.info("=== Takeout Organizer Started ===")
    logging.info(f"Source: {settings.source_root}")
    logging.info(f"Dest:   {settings.output_root} (layout={settings.layout})")

    if args.init_albums:
        try:
            names = load_collection_names(args.albums)
            store = CollectionManifestStore(settings.album_dir)
            store.clear_stale_locks()
            store.init_collections(names)
        except SetupError as e:
            logging.error(str(e))
            sys.exit(1)
        sys.exit(0)

    if args.archives:
        failed = ArchiveExtractor(settings.extract_workers).extract_all(args.archives, settings.source_root)
        bad = [a for a, err in failed.items() if err]
        if bad:
            logging.warning(f"{len(bad)} archives could not be extracted")

    app = TakeoutOrganizerApp(settings)

    try:
        summary = app.run()
    except KeyboardInterrupt:
        app.cancel()
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except SetupError as e:
        logging.error(f"Fatal: {e}")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during organization.")
        sys.exit(1)

    for category, path in summary.log_paths.items():
        print(f"{category} log: {path}")


if __name__ == "__main__":
    main()
