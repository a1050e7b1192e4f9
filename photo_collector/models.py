import os
import re
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Optional

from . import config
from .scanning.fingerprint import compute_fingerprint

_YEAR_RE = re.compile(config.YEAR_KEYWORD_PATTERN)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Settings:
    """
    Per-run settings snapshot. Read once at the start of a run and never
    written back by the engine.
    """
    library_path: str = ""
    cache_path: str = ""
    max_workers: int = config.DEFAULT_MAX_WORKERS
    thumbnail_size: int = config.DEFAULT_THUMBNAIL_SIZE
    collector_schedule: str = config.DEFAULT_COLLECTOR_SCHEDULE


@dataclass
class Folder:
    """
    Represents one directory in the library. `full_path` is the natural key.
    The library root itself has an empty folder_name and parent_path.
    """
    folder_name: str
    parent_path: str        # library-relative path of the parent, '' at the root
    full_path: str
    key_photo_id: str = ""

    @property
    def relative_path(self) -> str:
        if not self.parent_path:
            return self.folder_name
        return os.path.join(self.parent_path, self.folder_name)


@dataclass
class ImageMetadata:
    """
    Metadata read from a source image.
    """
    width: int = 0
    height: int = 0
    creation_datetime: Optional[datetime] = None
    make: str = ""
    model: str = ""
    lens_make: str = ""
    lens_model: str = ""
    caption: str = ""
    title: str = ""
    keywords: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    latitude: float = 0.0
    longitude: float = 0.0


@dataclass
class Photo:
    """
    Represents one image file in the catalog.
    """
    id: str                 # platform file identity (inode)
    file_name: str          # without extension
    ext: str                # with leading dot, case preserved
    full_path: str          # containing directory
    metadata_hash: str = ""

    lens_make: str = ""
    lens_model: str = ""
    make: str = ""
    model: str = ""
    keywords: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    caption: str = ""
    title: str = ""
    creation_datetime: Optional[datetime] = None
    width: int = 0
    height: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    year: str = ""

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_metadata(cls, image_path: Path, meta: ImageMetadata, photo_id: str = "") -> "Photo":
        """Builds a candidate record for a file on disk and fingerprints it."""
        photo = cls(
            id=photo_id,
            file_name=image_path.stem,
            ext=image_path.suffix,
            full_path=str(image_path.parent),
            lens_make=meta.lens_make.strip(),
            lens_model=meta.lens_model.strip(),
            make=meta.make.strip(),
            model=meta.model.strip(),
            keywords=list(meta.keywords),
            people=list(meta.people),
            caption=meta.caption.strip(),
            title=meta.title.strip(),
            creation_datetime=meta.creation_datetime,
            width=meta.width,
            height=meta.height,
            latitude=meta.latitude,
            longitude=meta.longitude,
            year=determine_year(meta.keywords, meta.creation_datetime),
        )
        photo.metadata_hash = compute_fingerprint(photo)
        return photo

    @property
    def file_path(self) -> Path:
        return Path(self.full_path) / f"{self.file_name}{self.ext}"

    @property
    def location_key(self) -> tuple:
        return (self.full_path, self.file_name, self.ext)

    def album_path(self, library_path: str) -> str:
        """Returns the photo's directory relative to the library root."""
        return relative_to_library(library_path, self.full_path)


def relative_to_library(library_path: str, path: str) -> str:
    rel = os.path.relpath(path, library_path)
    return "" if rel == os.curdir else rel


def determine_year(keywords: List[str], creation_datetime: Optional[datetime]) -> str:
    """
    A four digit keyword wins (people tag albums by year); otherwise the
    capture year, or '' when the capture time is unknown.
    """
    for keyword in keywords:
        if _YEAR_RE.match(keyword):
            return keyword
    if creation_datetime is not None:
        return f"{creation_datetime.year:04d}"
    return ""
