import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List

from ..cache.paths import photo_cache_path
from ..exceptions import CollectorError, FileAccessError, StorageError
from ..interfaces import ICatalogStore, IThumbnailCache
from ..models import Folder, Photo, Settings


@dataclass
class ReapReport:
    removed: int = 0
    pruned_dirs: List[Path] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)


class OrphanReaper:
    """
    Removes catalog rows and thumbnails for photos whose source file is gone,
    then prunes cache directories the removal left empty.
    """

    def __init__(self, settings: Settings, catalog: ICatalogStore, thumbnails: IThumbnailCache):
        self.settings = settings
        self.catalog = catalog
        self.thumbnails = thumbnails
        self.cache_root = Path(os.path.abspath(settings.cache_path))

    def reap(self, photos: Iterable[Photo]) -> ReapReport:
        report = ReapReport()

        for photo in photos:
            if photo.file_path.exists():
                continue

            cache_file = photo_cache_path(self.settings.library_path, self.settings.cache_path, photo)
            cache_dir = cache_file.parent

            logging.info(f"Removing photo {photo.id} ({photo.file_path}), cache {cache_file}")

            # The catalog row goes first; a failed delete leaves the thumbnail alone
            try:
                self.catalog.delete_photo(photo.id)
            except StorageError as e:
                logging.error(f"Could not delete photo {photo.id}: {e}")
                report.errors.append(e)
                continue
            report.removed += 1

            # Rows left over from another library map outside the cache
            if not self.in_cache(cache_file):
                logging.warning(f"Cache path {cache_file} for photo {photo.id} is outside {self.cache_root}")
                report.errors.append(FileAccessError(
                    f"cache path for '{photo.file_path}' is outside the cache root", path=str(cache_file)
                ))
                continue

            try:
                self.thumbnails.remove(cache_file)
            except CollectorError as e:
                logging.error(f"Could not remove cache file {cache_file}: {e}")
                report.errors.append(e)
                continue

            try:
                report.pruned_dirs.extend(self.prune_empty_dirs(cache_dir))
            except CollectorError as e:
                logging.error(f"Could not clean empty cache directories under {cache_dir}: {e}")
                report.errors.append(e)

        return report

    def in_cache(self, path: Path) -> bool:
        """True if `path` lies strictly below the cache root."""
        return self.cache_root in Path(os.path.abspath(path)).parents

    def prune_empty_dirs(self, thumbnails_dir: Path) -> List[Path]:
        """
        Removes `thumbnails_dir` if empty, then its album directory if that is
        empty too, deleting the album's Folder record. Never goes higher than
        the album directory and never touches anything outside the cache root.
        """
        removed: List[Path] = []

        if not self.in_cache(thumbnails_dir) or not thumbnails_dir.is_dir():
            return removed
        if not _is_dir_empty(thumbnails_dir):
            return removed

        logging.info(f"Removing empty thumbnails directory {thumbnails_dir}")
        _rmdir(thumbnails_dir)
        removed.append(thumbnails_dir)

        album_dir = thumbnails_dir.parent
        if not self.in_cache(album_dir):
            return removed
        if not _is_dir_empty(album_dir):
            return removed

        logging.info(f"Removing empty album directory {album_dir}")
        self.catalog.delete_folder(self.folder_for_cache_dir(album_dir))
        _rmdir(album_dir)
        removed.append(album_dir)
        return removed

    def folder_for_cache_dir(self, cache_dir: Path) -> Folder:
        """Maps a mirrored cache directory back to its library Folder."""
        rel = os.path.relpath(os.path.abspath(cache_dir), self.cache_root)
        parent = os.path.dirname(rel)
        return Folder(
            folder_name=os.path.basename(rel),
            parent_path=parent,
            full_path=os.path.join(self.settings.library_path, rel),
        )


def _is_dir_empty(path: Path) -> bool:
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except OSError as e:
        raise FileAccessError(f"error checking if directory is empty: {e}", path=str(path)) from e


def _rmdir(path: Path):
    try:
        path.rmdir()
    except OSError as e:
        raise FileAccessError(f"error removing directory {path}: {e}", path=str(path)) from e
