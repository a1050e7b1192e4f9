import os
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..cache.thumbnails import JpegThumbnailCache
from ..exceptions import AlreadyRunningError, ConfigError, FileAccessError, StorageError
from ..interfaces import ICatalogStore, ISettingsProvider, IThumbnailCache
from ..metadata.extract import MetadataExtractor
from ..models import Folder, Settings
from ..scanning.identity import get_file_id
from ..scanning.walker import TreeWalker
from ..workers import WorkerPool
from .reaper import OrphanReaper
from .task import PhotoIndex, PhotoSyncTask, CREATED, UPDATED, UNCHANGED, THUMBNAIL_RESTORED, FAILED


@dataclass
class SyncResult:
    """Outcome of one run. Errors are recoverable, per file or per operation."""
    errors: List[Exception] = field(default_factory=list)
    folders: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    thumbnails_restored: int = 0
    failed: int = 0
    removed: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def default_thumbnail_cache(settings: Settings) -> IThumbnailCache:
    return JpegThumbnailCache(thumbnail_size=settings.thumbnail_size)


class SyncEngine:
    """
    Synchronizes the catalog and thumbnail cache with the library on disk.

    A run reads settings, snapshots the catalog, reaps orphans, then walks the
    library: folders are saved on the walking thread as they are found and
    each JPEG becomes a task on a bounded worker pool. Only one run may be
    active per engine; a second caller gets AlreadyRunningError.
    """

    def __init__(self,
                 settings_provider: ISettingsProvider,
                 catalog: ICatalogStore,
                 thumbnail_cache_factory: Callable[[Settings], IThumbnailCache] = default_thumbnail_cache,
                 extractor: Optional[MetadataExtractor] = None,
                 show_progress: bool = False):
        self.settings_provider = settings_provider
        self.catalog = catalog
        self.thumbnail_cache_factory = thumbnail_cache_factory
        self.extractor = extractor or MetadataExtractor()
        self.show_progress = show_progress
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @contextmanager
    def _exclusive(self):
        if not self._run_lock.acquire(blocking=False):
            raise AlreadyRunningError()
        try:
            yield
        finally:
            self._run_lock.release()

    def run(self) -> SyncResult:
        """
        Raises ConfigError or AlreadyRunningError before any work starts, and
        StorageError if the catalog snapshot cannot be loaded. Everything else
        is collected into the returned SyncResult.
        """
        with self._exclusive():
            settings = self._load_settings()
            return self._run(settings)

    def _load_settings(self) -> Settings:
        settings = self.settings_provider.read()

        if not settings.library_path:
            raise ConfigError("library path is not set")
        if not os.path.isdir(settings.library_path):
            raise ConfigError(f"invalid library path: {settings.library_path}", path=settings.library_path)
        if not settings.cache_path:
            raise ConfigError("cache path is not set")
        if os.path.abspath(settings.cache_path) == os.path.abspath(settings.library_path):
            raise ConfigError("cache path must differ from the library path", path=settings.cache_path)
        if settings.max_workers < 1:
            raise ConfigError(f"max workers must be at least 1, got {settings.max_workers}")
        if settings.thumbnail_size < 1:
            raise ConfigError(f"thumbnail size must be at least 1, got {settings.thumbnail_size}")

        try:
            Path(settings.cache_path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"error creating cache directory: {e}", path=settings.cache_path) from e

        return settings

    def _run(self, settings: Settings) -> SyncResult:
        result = SyncResult()
        library_root = Path(settings.library_path)

        logging.info(
            f"Starting collector (max_workers={settings.max_workers}, "
            f"library={settings.library_path}, cache={settings.cache_path})"
        )

        # A missing snapshot leaves nothing to compare against, so this is fatal
        index = PhotoIndex(self.catalog.all_photos())
        logging.info(f"Retrieved {len(index)} catalogued photos.")

        thumbnails = self.thumbnail_cache_factory(settings)

        # --- Step 1: Orphans ---
        reap = OrphanReaper(settings, self.catalog, thumbnails).reap(index)
        result.removed = reap.removed
        result.errors.extend(reap.errors)

        # --- Step 2: Walk & Sync ---
        task = PhotoSyncTask(settings, self.catalog, thumbnails, index, self.extractor)
        walker = TreeWalker(skip_dirs=self._skip_dirs(settings))
        submitted: Dict[str, Path] = {}

        with WorkerPool(settings.max_workers, desc="Collecting", show_progress=self.show_progress) as pool:
            for item in walker.walk(library_root):
                if isinstance(item, Folder):
                    try:
                        self.catalog.save_folder(item)
                        result.folders += 1
                    except StorageError as e:
                        logging.error(f"Could not save folder {item.full_path}: {e}")
                        result.errors.append(e)
                    continue

                # One task per file identity; hard links would race on one row
                try:
                    file_id = get_file_id(item)
                except FileAccessError as e:
                    logging.error(f"Skipping {item}: {e}")
                    result.errors.append(e)
                    result.failed += 1
                    continue

                first_seen = submitted.setdefault(file_id, item)
                if first_seen != item:
                    logging.warning(f"Skipping {item}: same file as {first_seen}")
                    result.errors.append(FileAccessError(
                        f"'{item}' is the same file as '{first_seen}' (identity {file_id})", path=str(item)
                    ))
                    result.failed += 1
                    continue

                pool.submit(str(item), task, item, file_id)

            report = pool.wait()

        result.errors.extend(walker.errors)
        result.errors.extend(report.errors)

        for outcome in report.outcomes:
            if outcome.action == CREATED:
                result.created += 1
            elif outcome.action == UPDATED:
                result.updated += 1
            elif outcome.action == UNCHANGED:
                result.unchanged += 1
            elif outcome.action == THUMBNAIL_RESTORED:
                result.thumbnails_restored += 1
            elif outcome.action == FAILED:
                result.failed += 1

        logging.info(
            f"Collection complete. folders={result.folders} created={result.created} "
            f"updated={result.updated} unchanged={result.unchanged} "
            f"thumbnails_restored={result.thumbnails_restored} removed={result.removed} "
            f"failed={result.failed} errors={len(result.errors)}"
        )
        return result

    def _skip_dirs(self, settings: Settings) -> set:
        # Keep the walk out of the cache when it lives inside the library
        library = Path(os.path.abspath(settings.library_path))
        cache = Path(os.path.abspath(settings.cache_path))
        if library in cache.parents:
            return {Path(settings.library_path) / os.path.relpath(cache, library)}
        return set()
