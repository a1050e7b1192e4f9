import sqlite3
import logging
import threading
from typing import Optional

from ..exceptions import ConfigError
from ..interfaces import ISettingsProvider
from ..models import Settings


class SettingsProvider(ISettingsProvider):
    """
    Reads and writes the single settings row. The cache root is process
    configuration rather than a stored setting, so it is supplied here.
    """

    def __init__(self, conn: sqlite3.Connection, cache_path: str, lock: Optional[threading.RLock] = None):
        self.conn = conn
        self.cache_path = cache_path
        self._lock = lock or threading.RLock()

    def read(self) -> Settings:
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute("""
                    SELECT library_path, max_workers, thumbnail_size, collector_schedule
                    FROM settings WHERE id = 1
                """)
                row = cur.fetchone()
            except sqlite3.Error as e:
                raise ConfigError(f"error reading settings: {e}") from e

        if row is None:
            logging.debug("No stored settings; using defaults.")
            return Settings(cache_path=self.cache_path)

        library_path, max_workers, thumbnail_size, schedule = row
        return Settings(
            library_path=library_path or "",
            cache_path=self.cache_path,
            max_workers=max_workers,
            thumbnail_size=thumbnail_size,
            collector_schedule=schedule,
        )

    def save(self, settings: Settings) -> None:
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute("""
                        INSERT INTO settings (id, library_path, max_workers, thumbnail_size, collector_schedule)
                        VALUES (1, ?, ?, ?, ?)
                        ON CONFLICT (id) DO UPDATE SET
                            library_path = excluded.library_path,
                            max_workers = excluded.max_workers,
                            thumbnail_size = excluded.thumbnail_size,
                            collector_schedule = excluded.collector_schedule
                    """, (settings.library_path, settings.max_workers,
                          settings.thumbnail_size, settings.collector_schedule))
            except sqlite3.Error as e:
                raise ConfigError(f"error saving settings: {e}") from e

    def update(self, library_path: Optional[str] = None, max_workers: Optional[int] = None,
               thumbnail_size: Optional[int] = None, collector_schedule: Optional[str] = None) -> Settings:
        """Applies the given overrides on top of the stored row and persists them."""
        current = self.read()
        updated = Settings(
            library_path=library_path if library_path is not None else current.library_path,
            cache_path=self.cache_path,
            max_workers=max_workers if max_workers is not None else current.max_workers,
            thumbnail_size=thumbnail_size if thumbnail_size is not None else current.thumbnail_size,
            collector_schedule=collector_schedule or current.collector_schedule,
        )
        self.save(updated)
        return updated
