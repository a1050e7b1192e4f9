"""Collaborator interfaces consumed by the sync engine.

Each has one production adapter (SQLite catalog, SQLite settings, JPEG
thumbnail cache); tests substitute in-memory versions.
"""
from pathlib import Path
from typing import List

from .models import Folder, Photo, Settings


class ISettingsProvider:
    """Source of the per-run settings snapshot."""

    def read(self) -> Settings:
        """Return current settings. Raises ConfigError if unreadable."""
        raise NotImplementedError


class ICatalogStore:
    """Durable store of folder and photo records. Failures raise StorageError."""

    def all_photos(self) -> List[Photo]:
        raise NotImplementedError

    def save_photo(self, photo: Photo) -> None:
        raise NotImplementedError

    def delete_photo(self, photo_id: str) -> None:
        raise NotImplementedError

    def save_folder(self, folder: Folder) -> None:
        """Upsert by full_path."""
        raise NotImplementedError

    def delete_folder(self, folder: Folder) -> None:
        """Delete by folder_name + parent_path."""
        raise NotImplementedError


class IThumbnailCache:
    """Derived, size-bounded JPEG artifacts keyed by cache path."""

    def exists(self, cache_path: Path) -> bool:
        raise NotImplementedError

    def create(self, source_path: Path, cache_path: Path) -> None:
        """Raises EncodeError (or UnsupportedFormatError) or FileAccessError."""
        raise NotImplementedError

    def remove(self, cache_path: Path) -> None:
        """Raises FileAccessError. A missing artifact is not an error."""
        raise NotImplementedError
