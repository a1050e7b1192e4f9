"""
Deterministic locations of source photos and their cached thumbnails.

The cache mirrors the library tree: a photo at <library>/<album>/<name><ext>
has its thumbnail at <cache>/<album>/thumbnails/<name><ext>.
"""
import os
from pathlib import Path

from .. import config
from ..models import Photo, relative_to_library


def _album_relative(library_path: str, album_path: str) -> str:
    if os.path.isabs(album_path):
        return relative_to_library(library_path, album_path)
    return album_path


def thumbnail_cache_dir(library_path: str, cache_path: str, album_path: str) -> Path:
    return Path(cache_path) / _album_relative(library_path, album_path) / config.THUMBNAILS_DIR_NAME


def thumbnail_cache_path(library_path: str, cache_path: str, album_path: str, file_name: str, ext: str) -> Path:
    return thumbnail_cache_dir(library_path, cache_path, album_path) / f"{file_name}{ext}"


def photo_cache_path(library_path: str, cache_path: str, photo: Photo) -> Path:
    return thumbnail_cache_path(
        library_path, cache_path, photo.album_path(library_path), photo.file_name, photo.ext
    )
