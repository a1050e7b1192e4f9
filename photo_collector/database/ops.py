import sqlite3
import logging
import threading
from collections import defaultdict
from datetime import datetime, UTC
from typing import Optional, List, Dict

from ..exceptions import StorageError
from ..interfaces import ICatalogStore
from ..models import Folder, Photo

PHOTO_COLUMNS = """
    id, created_at, updated_at, file_name, ext, full_path, metadata_hash,
    lens_make, lens_model, make, model, caption, title, creation_date_time,
    width, height, latitude, longitude, year
"""


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class CatalogStore(ICatalogStore):
    """
    SQLite-backed catalog of folders and photos.

    Safe to share between worker threads: every statement runs under the
    lock handed in by DBManager.
    """

    def __init__(self, conn: sqlite3.Connection, lock: Optional[threading.RLock] = None):
        self.conn = conn
        self._lock = lock or threading.RLock()

    # --- Photos ---

    def all_photos(self) -> List[Photo]:
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute(f"SELECT {PHOTO_COLUMNS} FROM photos ORDER BY full_path, file_name")
                rows = cur.fetchall()
                keywords = self._load_keywords()
                people = self._load_people()
            except sqlite3.Error as e:
                raise StorageError(f"error querying for all photos: {e}") from e

        return [self._row_to_photo(r, keywords, people) for r in rows]

    def get_photo(self, photo_id: str) -> Optional[Photo]:
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ?", (photo_id,))
                row = cur.fetchone()
                if row is None:
                    return None
                keywords = self._load_keywords(photo_id)
                people = self._load_people(photo_id)
            except sqlite3.Error as e:
                raise StorageError(f"error querying for photo {photo_id}: {e}") from e

        return self._row_to_photo(row, keywords, people)

    def save_photo(self, photo: Photo) -> None:
        """
        Inserts or updates a photo by id, then replaces its keyword and people
        associations. `created_at` of an existing row is never overwritten.
        Any other row at the same (full_path, file_name, ext) is removed, since
        a new file identity at a known location replaces the old file object.
        """
        now_iso = datetime.now(UTC).isoformat()

        with self._lock:
            try:
                with self.conn:
                    cur = self.conn.cursor()
                    cur.execute(
                        "SELECT id FROM photos WHERE full_path = ? AND file_name = ? AND ext = ? AND id != ?",
                        (photo.full_path, photo.file_name, photo.ext, photo.id),
                    )
                    for (stale_id,) in cur.fetchall():
                        logging.debug(f"Replacing catalog row {stale_id} at {photo.file_path}")
                        self._delete_photo_rows(cur, stale_id)

                    cur.execute(f"""
                        INSERT INTO photos ({PHOTO_COLUMNS})
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT (id) DO UPDATE SET
                            updated_at = excluded.updated_at,
                            file_name = excluded.file_name,
                            ext = excluded.ext,
                            full_path = excluded.full_path,
                            metadata_hash = excluded.metadata_hash,
                            lens_make = excluded.lens_make,
                            lens_model = excluded.lens_model,
                            make = excluded.make,
                            model = excluded.model,
                            caption = excluded.caption,
                            title = excluded.title,
                            creation_date_time = excluded.creation_date_time,
                            width = excluded.width,
                            height = excluded.height,
                            latitude = excluded.latitude,
                            longitude = excluded.longitude,
                            year = excluded.year
                    """, (
                        photo.id, _iso(photo.created_at), _iso(photo.updated_at),
                        photo.file_name, photo.ext, photo.full_path, photo.metadata_hash,
                        photo.lens_make, photo.lens_model, photo.make, photo.model,
                        photo.caption, photo.title, _iso(photo.creation_datetime),
                        photo.width, photo.height, photo.latitude, photo.longitude, photo.year,
                    ))

                    cur.execute("DELETE FROM photos_keywords WHERE photo_id = ?", (photo.id,))
                    cur.execute("DELETE FROM photos_people WHERE photo_id = ?", (photo.id,))

                    for keyword in photo.keywords:
                        cur.execute("INSERT OR IGNORE INTO keywords (keyword) VALUES (?)", (keyword,))
                        cur.execute(
                            "INSERT OR IGNORE INTO photos_keywords (photo_id, keyword) VALUES (?, ?)",
                            (photo.id, keyword),
                        )

                    for name in photo.people:
                        cur.execute(
                            "INSERT OR IGNORE INTO people (name, created_at, updated_at) VALUES (?, ?, ?)",
                            (name, now_iso, now_iso),
                        )
                        cur.execute("SELECT id FROM people WHERE name = ?", (name,))
                        person_id = cur.fetchone()[0]
                        cur.execute(
                            "INSERT OR IGNORE INTO photos_people (photo_id, person_id) VALUES (?, ?)",
                            (photo.id, person_id),
                        )
            except sqlite3.Error as e:
                raise StorageError(f"could not save photo '{photo.file_name}': {e}", path=str(photo.file_path)) from e

    def delete_photo(self, photo_id: str) -> None:
        with self._lock:
            try:
                with self.conn:
                    self._delete_photo_rows(self.conn.cursor(), photo_id)
            except sqlite3.Error as e:
                raise StorageError(f"error deleting photo {photo_id}: {e}") from e

    # --- Folders ---

    def save_folder(self, folder: Folder) -> None:
        """Upserts by full_path. An empty key_photo_id keeps the stored one."""
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute("""
                        INSERT INTO folders (full_path, folder_name, parent_path, key_photo_id)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT (full_path) DO UPDATE SET
                            folder_name = excluded.folder_name,
                            parent_path = excluded.parent_path,
                            key_photo_id = CASE
                                WHEN excluded.key_photo_id != '' THEN excluded.key_photo_id
                                ELSE folders.key_photo_id
                            END
                    """, (folder.full_path, folder.folder_name, folder.parent_path, folder.key_photo_id))
            except sqlite3.Error as e:
                raise StorageError(f"error saving folder: {e}", path=folder.full_path) from e

    def delete_folder(self, folder: Folder) -> None:
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        "DELETE FROM folders WHERE folder_name = ? AND parent_path = ?",
                        (folder.folder_name, folder.parent_path),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"error deleting folder: {e}", path=folder.full_path) from e

    def all_folders(self) -> List[Folder]:
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute("SELECT folder_name, parent_path, full_path, key_photo_id FROM folders ORDER BY full_path")
                rows = cur.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"error querying for folders: {e}") from e
        return [Folder(folder_name=r[0], parent_path=r[1], full_path=r[2], key_photo_id=r[3]) for r in rows]

    # --- Internal Helpers ---

    def _delete_photo_rows(self, cur: sqlite3.Cursor, photo_id: str):
        cur.execute("DELETE FROM photos_keywords WHERE photo_id = ?", (photo_id,))
        cur.execute("DELETE FROM photos_people WHERE photo_id = ?", (photo_id,))
        cur.execute("DELETE FROM photos WHERE id = ?", (photo_id,))

    def _load_keywords(self, photo_id: Optional[str] = None) -> Dict[str, List[str]]:
        cur = self.conn.cursor()
        if photo_id is None:
            cur.execute("SELECT photo_id, keyword FROM photos_keywords ORDER BY rowid")
        else:
            cur.execute("SELECT photo_id, keyword FROM photos_keywords WHERE photo_id = ? ORDER BY rowid", (photo_id,))
        out: Dict[str, List[str]] = defaultdict(list)
        for pid, keyword in cur.fetchall():
            out[pid].append(keyword)
        return out

    def _load_people(self, photo_id: Optional[str] = None) -> Dict[str, List[str]]:
        cur = self.conn.cursor()
        sql = """
            SELECT pp.photo_id, p.name
            FROM photos_people pp
            JOIN people p ON p.id = pp.person_id
        """
        if photo_id is None:
            cur.execute(sql + " ORDER BY pp.rowid")
        else:
            cur.execute(sql + " WHERE pp.photo_id = ? ORDER BY pp.rowid", (photo_id,))
        out: Dict[str, List[str]] = defaultdict(list)
        for pid, name in cur.fetchall():
            out[pid].append(name)
        return out

    def _row_to_photo(self, r, keywords: Dict[str, List[str]], people: Dict[str, List[str]]) -> Photo:
        return Photo(
            id=r[0],
            created_at=_parse_iso(r[1]),
            updated_at=_parse_iso(r[2]),
            file_name=r[3],
            ext=r[4],
            full_path=r[5],
            metadata_hash=r[6],
            lens_make=r[7],
            lens_model=r[8],
            make=r[9],
            model=r[10],
            caption=r[11],
            title=r[12],
            creation_datetime=_parse_iso(r[13]),
            width=r[14],
            height=r[15],
            latitude=r[16],
            longitude=r[17],
            year=r[18],
            keywords=list(keywords.get(r[0], [])),
            people=list(people.get(r[0], [])),
        )
