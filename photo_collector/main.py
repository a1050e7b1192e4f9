import argparse
import logging
import sys
from pathlib import Path

from . import config
from .database.db import DBManager
from .database.ops import CatalogStore
from .database.settings import SettingsProvider
from .exceptions import CollectorError
from .scheduler import CollectorScheduler
from .sync.engine import SyncEngine

def setup_logging(cache_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the cache root."""
    log_level = logging.DEBUG if verbose else logging.INFO

    cache_root.mkdir(parents=True, exist_ok=True)
    log_file = cache_root / config.LOG_FILE_NAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Collector: sync a photo library into a catalog and thumbnail cache")

    p.add_argument("--cache-dir", type=Path, default=Path("cache"), help="Thumbnail cache root (default: ./cache)")
    p.add_argument("--db", type=Path, default=None, help="Custom path for SQLite DB (default: cache-dir/photo_catalog.db)")

    # Persisted settings; given values are saved before the run
    p.add_argument("--library", type=str, default=None, help="Library root to collect photos from")
    p.add_argument("--max-workers", type=int, default=None, help="Number of parallel sync workers")
    p.add_argument("--thumbnail-size", type=int, default=None, help="Longest thumbnail edge in pixels")
    p.add_argument("--schedule", type=str, default=None, help="Cron expression for scheduled runs")

    p.add_argument("--watch", action="store_true", help="Run now, then keep running on the schedule")
    p.add_argument("--progress", action="store_true", help="Show a progress bar while collecting")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)

    cache_root = args.cache_dir.resolve()
    setup_logging(cache_root, args.verbose)

    logging.info("=== Photo Collector Started ===")

    db_path = args.db if args.db else cache_root / config.DEFAULT_DB_NAME
    db_manager = DBManager(db_path)
    try:
        conn = db_manager.connect()
    except CollectorError as e:
        logging.error(f"Could not open catalog: {e}")
        sys.exit(1)

    with db_manager:
        settings_provider = SettingsProvider(conn, str(cache_root), lock=db_manager.write_lock)
        catalog = CatalogStore(conn, lock=db_manager.write_lock)

        try:
            settings = settings_provider.read()
            if any(v is not None for v in (args.library, args.max_workers, args.thumbnail_size, args.schedule)):
                library = str(Path(args.library).resolve()) if args.library else None
                settings = settings_provider.update(
                    library_path=library,
                    max_workers=args.max_workers,
                    thumbnail_size=args.thumbnail_size,
                    collector_schedule=args.schedule,
                )
                logging.info("Settings updated.")
        except CollectorError as e:
            logging.error(f"Could not load settings: {e}")
            sys.exit(1)

        logging.info(f"Library: {settings.library_path or '(not set)'}")
        logging.info(f"Cache:   {cache_root}")

        engine = SyncEngine(settings_provider, catalog, show_progress=args.progress)

        if args.watch:
            try:
                collector = CollectorScheduler(engine, settings.collector_schedule)
            except CollectorError as e:
                logging.error(str(e))
                sys.exit(1)

            try:
                collector.start(run_now=True)
            except (KeyboardInterrupt, SystemExit):
                logging.warning("Collector stopped.")
                collector.shutdown()
            return

        try:
            result = engine.run()
        except KeyboardInterrupt:
            logging.warning("Operation cancelled by user.")
            sys.exit(1)
        except CollectorError as e:
            logging.error(f"Fatal error during collection: {e}")
            sys.exit(1)

        for err in result.errors:
            logging.error(f"  {err}")

if __name__ == "__main__":
    main()
