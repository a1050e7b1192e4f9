import sqlite3
from datetime import datetime, UTC

import pytest

from photo_collector import config
from photo_collector.database.ops import CatalogStore
from photo_collector.database.schema import init_schema
from photo_collector.database.settings import SettingsProvider
from photo_collector.exceptions import ConfigError, StorageError
from photo_collector.models import Folder, Photo


def _photo(pid="100", name="a", full_path="/lib/2023", **kw):
    defaults = dict(
        id=pid, file_name=name, ext=".jpg", full_path=full_path, metadata_hash="123",
        keywords=["beach", "2023"], people=["Ann"], width=10, height=20,
        creation_datetime=datetime(2023, 6, 1, 10, 0, 0), year="2023",
    )
    defaults.update(kw)
    return Photo(**defaults)

def test_schema_is_idempotent(conn):
    init_schema(conn)
    init_schema(conn)
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"folders", "photos", "keywords", "photos_keywords", "people", "photos_people", "settings"} <= tables

def test_save_and_load_photo(catalog):
    catalog.save_photo(_photo())

    [loaded] = catalog.all_photos()
    assert loaded.id == "100"
    assert loaded.location_key == ("/lib/2023", "a", ".jpg")
    assert loaded.keywords == ["beach", "2023"]
    assert loaded.people == ["Ann"]
    assert loaded.creation_datetime == datetime(2023, 6, 1, 10, 0, 0)
    assert loaded.created_at.tzinfo is not None

    assert catalog.get_photo("100").metadata_hash == "123"
    assert catalog.get_photo("missing") is None

def test_update_preserves_created_at_and_replaces_associations(catalog):
    first = _photo(created_at=datetime(2020, 1, 1, tzinfo=UTC))
    catalog.save_photo(first)

    second = _photo(metadata_hash="456", keywords=["mountain"], people=["Bob", "Cy"],
                    created_at=datetime(2024, 1, 1, tzinfo=UTC))
    catalog.save_photo(second)

    [loaded] = catalog.all_photos()
    assert loaded.metadata_hash == "456"
    assert loaded.created_at == datetime(2020, 1, 1, tzinfo=UTC)
    assert loaded.keywords == ["mountain"]
    assert loaded.people == ["Bob", "Cy"]

def test_people_are_shared_between_photos(catalog, conn):
    catalog.save_photo(_photo(pid="1", name="a"))
    catalog.save_photo(_photo(pid="2", name="b"))
    assert conn.execute("SELECT COUNT(*) FROM people WHERE name = 'Ann'").fetchone()[0] == 1
    assert conn.execute("SELECT COUNT(*) FROM photos_people").fetchone()[0] == 2

def test_new_identity_at_same_location_replaces_row(catalog):
    catalog.save_photo(_photo(pid="1"))
    catalog.save_photo(_photo(pid="2"))

    photos = catalog.all_photos()
    assert [p.id for p in photos] == ["2"]

def test_delete_photo_removes_associations(catalog, conn):
    catalog.save_photo(_photo())
    catalog.delete_photo("100")

    assert catalog.all_photos() == []
    assert conn.execute("SELECT COUNT(*) FROM photos_keywords").fetchone()[0] == 0
    assert conn.execute("SELECT COUNT(*) FROM photos_people").fetchone()[0] == 0

def test_folder_upsert_and_delete(catalog):
    catalog.save_folder(Folder("trip", "2023", "/lib/2023/trip", key_photo_id="7"))
    catalog.save_folder(Folder("trip", "2023", "/lib/2023/trip"))

    [folder] = catalog.all_folders()
    assert folder.key_photo_id == "7"

    catalog.delete_folder(Folder("trip", "2023", "/anything"))
    assert catalog.all_folders() == []

def test_errors_surface_as_storage_error(catalog, conn):
    conn.execute("DROP TABLE photos_people")
    with pytest.raises(StorageError):
        catalog.all_photos()
    with pytest.raises(StorageError):
        catalog.save_photo(_photo())

def test_failed_save_rolls_back(catalog, conn):
    catalog.save_photo(_photo(pid="1"))
    conn.execute("DROP TABLE photos_people")
    with pytest.raises(StorageError):
        catalog.save_photo(_photo(pid="1", metadata_hash="999"))

    row = conn.execute("SELECT metadata_hash FROM photos WHERE id = '1'").fetchone()
    assert row[0] == "123"


# --- Settings ---

def test_settings_defaults_without_row(conn):
    settings = SettingsProvider(conn, "/cache").read()
    assert settings.library_path == ""
    assert settings.cache_path == "/cache"
    assert settings.max_workers == config.DEFAULT_MAX_WORKERS
    assert settings.thumbnail_size == config.DEFAULT_THUMBNAIL_SIZE
    assert settings.collector_schedule == config.DEFAULT_COLLECTOR_SCHEDULE

def test_settings_update_merges_overrides(conn):
    provider = SettingsProvider(conn, "/cache")
    provider.update(library_path="/lib", max_workers=3)
    provider.update(thumbnail_size=128)

    settings = provider.read()
    assert settings.library_path == "/lib"
    assert settings.max_workers == 3
    assert settings.thumbnail_size == 128
    assert settings.collector_schedule == config.DEFAULT_COLLECTOR_SCHEDULE

def test_settings_read_error_is_config_error():
    conn = sqlite3.connect(":memory:")
    with pytest.raises(ConfigError):
        SettingsProvider(conn, "/cache").read()
