import argparse
import logging
import os
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.models import ProcessConfig
from db.catalog import CatalogError, backup_catalog, describe_columns, open_catalog
from ui.workers.backfill_worker import BackfillWorker

logger = logging.getLogger("backfill")


def debug_print_schema(db_path: str) -> None:
    db = open_catalog(db_path)
    try:
        print("\n[TypedBaseItems table schema]")
        for name, col_type in describe_columns(db):
            print(f"- {name} ({col_type})")
    finally:
        db.close()


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fill missing artist, album, cover, track number and playlist data in a Jellyfin library database.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", required=True, help="Path to the Jellyfin library.db file")
    parser.add_argument("--image-name", default="Frontal", help="Text contained in the cover image file name")
    parser.add_argument("--no-images", action="store_true", help="Don't fill the Images column")
    parser.add_argument("--no-artists", action="store_true", help="Don't fill the Artists/AlbumArtists/Album columns")
    parser.add_argument("--no-albums", action="store_true", help="Don't update album rows")
    parser.add_argument("--no-track-numbers", action="store_true", help="Don't fill track numbers")
    parser.add_argument("--no-tracklists", action="store_true", help="Don't fill empty playlist track lists")
    parser.add_argument("--no-backup", action="store_true", help="Don't copy the database before modifying it")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def config_from_arguments(args: argparse.Namespace) -> ProcessConfig:
    return ProcessConfig(
        update_images=not args.no_images,
        update_artists=not args.no_artists,
        process_albums=not args.no_albums,
        process_track_numbers=not args.no_track_numbers,
        process_tracklists=not args.no_tracklists,
        image_name=args.image_name,
    )


def main(argv=None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    db_path = os.path.abspath(args.db)
    if not os.path.isfile(db_path):
        logger.error("Database file '%s' doesn't exist.", db_path)
        return 1

    if os.getenv("CATALOG_DEBUG_SCHEMA") == "1":
        try:
            debug_print_schema(db_path)
        except CatalogError as e:
            logger.error("%s", e)
            return 1

    if not args.no_backup:
        backup_catalog(db_path)

    qt_app = QCoreApplication(sys.argv[:1])

    worker = BackfillWorker(db_path, config_from_arguments(args))
    worker.progress.connect(lambda percent: logger.debug("Progress: %d%%", percent))
    worker.finished_signal.connect(
        lambda ok, message: (logger.info if ok else logger.error)("%s", message)
    )
    worker.finished.connect(qt_app.quit)
    worker.start()

    qt_app.exec()
    worker.wait()

    result = worker.result
    if result is None or not result.ok:
        return 1
    logger.info("%d catalog rows updated.", result.updated_rows)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
