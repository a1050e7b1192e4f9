import io
import struct
import threading
from pathlib import Path

import pytest
from PIL import Image

from photo_collector.database.db import DBManager
from photo_collector.database.ops import CatalogStore
from photo_collector.database.settings import SettingsProvider
from photo_collector.exceptions import EncodeError, StorageError
from photo_collector.interfaces import ICatalogStore, ISettingsProvider, IThumbnailCache
from photo_collector.models import Settings


# --- SQLite fixtures ---

@pytest.fixture
def db_manager():
    """Returns a connected in-memory DBManager with the schema initialized."""
    manager = DBManager(":memory:")
    manager.connect()
    try:
        yield manager
    finally:
        manager.close()

@pytest.fixture
def conn(db_manager):
    return db_manager.connect()

@pytest.fixture
def catalog(db_manager):
    """Returns a CatalogStore attached to the in-memory DB."""
    return CatalogStore(db_manager.connect(), lock=db_manager.write_lock)

@pytest.fixture
def library(tmp_path):
    root = tmp_path / "library"
    root.mkdir()
    return root

@pytest.fixture
def cache_root(tmp_path):
    return tmp_path / "cache"

@pytest.fixture
def sqlite_settings(db_manager, library, cache_root):
    provider = SettingsProvider(db_manager.connect(), str(cache_root), lock=db_manager.write_lock)
    provider.update(library_path=str(library), max_workers=2, thumbnail_size=32)
    return provider


# --- Fake adapters ---

class StaticSettings(ISettingsProvider):
    def __init__(self, settings: Settings):
        self.settings = settings
        self.reads = 0

    def read(self) -> Settings:
        self.reads += 1
        return self.settings


class InMemoryCatalog(ICatalogStore):
    """Dict-backed catalog that records every write and can be told to fail."""

    def __init__(self, photos=None):
        self.photos = {p.id: p for p in (photos or [])}
        self.folders = {}
        self.saved_photos = []
        self.deleted_photos = []
        self.deleted_folders = []
        self.fail_save_for = set()
        self.fail_delete_for = set()
        self._lock = threading.Lock()

    def all_photos(self):
        with self._lock:
            return list(self.photos.values())

    def save_photo(self, photo):
        if photo.file_name in self.fail_save_for:
            raise StorageError(f"could not save photo '{photo.file_name}'")
        with self._lock:
            for pid, existing in list(self.photos.items()):
                if pid != photo.id and existing.location_key == photo.location_key:
                    del self.photos[pid]
            stored = self.photos.get(photo.id)
            if stored is not None:
                photo.created_at = stored.created_at
            self.photos[photo.id] = photo
            self.saved_photos.append(photo)

    def delete_photo(self, photo_id):
        if photo_id in self.fail_delete_for:
            raise StorageError(f"error deleting photo {photo_id}")
        with self._lock:
            self.photos.pop(photo_id, None)
            self.deleted_photos.append(photo_id)

    def save_folder(self, folder):
        with self._lock:
            self.folders[folder.full_path] = folder

    def delete_folder(self, folder):
        with self._lock:
            for key, f in list(self.folders.items()):
                if f.folder_name == folder.folder_name and f.parent_path == folder.parent_path:
                    del self.folders[key]
            self.deleted_folders.append(folder)


class RecordingThumbnails(IThumbnailCache):
    """Writes a placeholder file per thumbnail so directory pruning is real."""

    def __init__(self):
        self.created = []
        self.removed = []
        self.fail_create_for = set()
        self._lock = threading.Lock()

    def exists(self, cache_path):
        return Path(cache_path).is_file()

    def create(self, source_path, cache_path):
        if Path(source_path).name in self.fail_create_for:
            raise EncodeError(f"error encoding JPEG image {cache_path}", path=str(cache_path))
        cache_path = Path(cache_path)
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_bytes(b"thumb")
        with self._lock:
            self.created.append(cache_path)

    def remove(self, cache_path):
        Path(cache_path).unlink(missing_ok=True)
        with self._lock:
            self.removed.append(Path(cache_path))


@pytest.fixture
def fake_catalog():
    return InMemoryCatalog()

@pytest.fixture
def fake_thumbnails():
    return RecordingThumbnails()

@pytest.fixture
def settings(library, cache_root):
    return Settings(library_path=str(library), cache_path=str(cache_root), max_workers=2, thumbnail_size=32)


# --- JPEG builders ---

def xmp_packet(keywords=(), people=(), title=None, description=None) -> str:
    def bag(tag, items, kind="rdf:Bag"):
        lis = "".join(f"<rdf:li>{i}</rdf:li>" for i in items)
        return f"<{tag}><{kind}>{lis}</{kind}></{tag}>"

    parts = []
    if keywords:
        parts.append(bag("dc:subject", keywords))
    if people:
        parts.append(bag("Iptc4xmpExt:PersonInImage", people))
    if title:
        parts.append(bag("dc:title", [title], "rdf:Alt"))
    if description:
        parts.append(bag("dc:description", [description], "rdf:Alt"))

    return (
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">'
        '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
        '<rdf:Description rdf:about="" xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:Iptc4xmpExt="http://iptc.org/std/Iptc4xmpExt/2008-02-29/">'
        + "".join(parts) +
        '</rdf:Description></rdf:RDF></x:xmpmeta>'
    )

def insert_xmp(jpeg: bytes, xmp: str) -> bytes:
    """Adds an XMP APP1 segment after the JFIF header."""
    payload = b"http://ns.adobe.com/xap/1.0/\x00" + xmp.encode("utf-8")
    segment = b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload
    offset = 2
    if jpeg[2:4] == b"\xff\xe0":
        offset = 4 + struct.unpack(">H", jpeg[4:6])[0]
    return jpeg[:offset] + segment + jpeg[offset:]

def make_jpeg(path: Path, size=(64, 48), color=(200, 30, 30), exif=None, xmp=None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    buf = io.BytesIO()
    img = Image.new("RGB", size, color)
    if exif is not None:
        img.save(buf, format="JPEG", exif=exif)
    else:
        img.save(buf, format="JPEG")
    data = buf.getvalue()
    if xmp is not None:
        data = insert_xmp(data, xmp)
    path.write_bytes(data)
    return path

@pytest.fixture
def jpeg_factory():
    return make_jpeg
