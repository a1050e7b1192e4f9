import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..cache.paths import thumbnail_cache_path
from ..exceptions import CollectorError, DecodeError, FileAccessError, StorageError
from ..interfaces import ICatalogStore, IThumbnailCache
from ..metadata.extract import MetadataExtractor
from ..models import Photo, Settings, relative_to_library
from ..scanning.identity import get_file_id

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
THUMBNAIL_RESTORED = "thumbnail_restored"
FAILED = "failed"


@dataclass
class TaskOutcome:
    path: str
    action: str
    errors: List[Exception] = field(default_factory=list)


class PhotoIndex:
    """
    Read-only view of the catalog as it stood when the run started.
    Shared by every task; nothing writes to it after construction.
    """

    def __init__(self, photos: Iterable[Photo]):
        self._photos = list(photos)
        self._by_location: Dict[tuple, Photo] = {p.location_key: p for p in self._photos}
        self._by_id: Dict[str, Photo] = {p.id: p for p in self._photos}

    def __len__(self) -> int:
        return len(self._photos)

    def __iter__(self):
        return iter(self._photos)

    def find_by_location(self, full_path: str, file_name: str, ext: str) -> Optional[Photo]:
        return self._by_location.get((full_path, file_name, ext))

    def find_by_id(self, photo_id: str) -> Optional[Photo]:
        return self._by_id.get(photo_id)


class PhotoSyncTask:
    """
    Brings the catalog row and thumbnail of one library file up to date.

    | found at path | same identity | fingerprint differs | action                        |
    |---------------|---------------|---------------------|-------------------------------|
    | no            | -             | -                   | thumbnail + insert            |
    | yes           | yes           | yes                 | thumbnail + update            |
    | yes           | yes           | no                  | thumbnail only if missing     |
    | yes           | no            | -                   | thumbnail + insert            |
    """

    def __init__(self,
                 settings: Settings,
                 catalog: ICatalogStore,
                 thumbnails: IThumbnailCache,
                 index: PhotoIndex,
                 extractor: Optional[MetadataExtractor] = None):
        self.settings = settings
        self.catalog = catalog
        self.thumbnails = thumbnails
        self.index = index
        self.extractor = extractor or MetadataExtractor()

    def __call__(self, path: Path, file_id: Optional[str] = None) -> TaskOutcome:
        return self.process(path, file_id)

    def process(self, path: Path, file_id: Optional[str] = None) -> TaskOutcome:
        """`file_id` may be supplied when the caller has already stat'ed the file."""
        outcome = TaskOutcome(path=str(path), action=FAILED)

        try:
            meta = self.extractor.extract(path)
            if file_id is None:
                file_id = get_file_id(path)
        except (DecodeError, FileAccessError) as e:
            logging.error(f"Skipping {path}: {e}")
            outcome.errors.append(e)
            return outcome

        candidate = Photo.from_metadata(path, meta, photo_id=file_id)
        album_path = relative_to_library(self.settings.library_path, candidate.full_path)
        cache_path = thumbnail_cache_path(
            self.settings.library_path, self.settings.cache_path, album_path, candidate.file_name, candidate.ext
        )

        existing = self.index.find_by_location(candidate.full_path, candidate.file_name, candidate.ext)
        same_identity = existing is not None and existing.id == file_id

        if same_identity and existing.metadata_hash == candidate.metadata_hash:
            if self.thumbnails.exists(cache_path):
                outcome.action = UNCHANGED
                return outcome

            logging.info(f"Creating missing thumbnail for {path}")
            outcome.action = THUMBNAIL_RESTORED
            self._create_thumbnail(path, cache_path, outcome)
            return outcome

        if same_identity:
            outcome.action = UPDATED
            candidate.created_at = existing.created_at
            candidate.updated_at = datetime.now(UTC)
        else:
            outcome.action = CREATED
            previous = self.index.find_by_id(file_id)
            if previous is not None and previous is not existing:
                logging.debug(f"File identity {file_id} was catalogued at {previous.file_path}")

        logging.info(
            f"{outcome.action.capitalize()} photo {path} (id={file_id}, hash={candidate.metadata_hash}, "
            f"previous_id={existing.id if existing else ''}, previous_hash={existing.metadata_hash if existing else ''})"
        )

        # Thumbnail and catalog write are attempted independently
        self._create_thumbnail(path, cache_path, outcome)
        try:
            self.catalog.save_photo(candidate)
        except StorageError as e:
            logging.error(f"Error saving photo {path}: {e}")
            outcome.errors.append(e)

        return outcome

    def _create_thumbnail(self, path: Path, cache_path: Path, outcome: TaskOutcome):
        try:
            self.thumbnails.create(path, cache_path)
        except CollectorError as e:
            logging.error(f"Could not create cache file for {path}: {e}")
            outcome.errors.append(e)
