"""
Catalog schema: folders, photos and their keyword/people links, settings.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the catalog schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Schema version, bumped on incompatible catalog changes
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Folder tree (one row per library directory)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS folders (
            full_path       TEXT PRIMARY KEY,
            folder_name     TEXT NOT NULL,
            parent_path     TEXT NOT NULL,
            key_photo_id    TEXT NOT NULL DEFAULT ''
        );
        """)

        # 3. Photos, keyed by file identity (inode)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id                  TEXT PRIMARY KEY,
            created_at          TEXT NOT NULL,
            updated_at          TEXT NOT NULL,
            file_name           TEXT NOT NULL,
            ext                 TEXT NOT NULL,
            full_path           TEXT NOT NULL,
            metadata_hash       TEXT NOT NULL,
            lens_make           TEXT NOT NULL DEFAULT '',
            lens_model          TEXT NOT NULL DEFAULT '',
            make                TEXT NOT NULL DEFAULT '',
            model               TEXT NOT NULL DEFAULT '',
            caption             TEXT NOT NULL DEFAULT '',
            title               TEXT NOT NULL DEFAULT '',
            creation_date_time  TEXT,
            width               INTEGER NOT NULL DEFAULT 0,
            height              INTEGER NOT NULL DEFAULT 0,
            latitude            REAL NOT NULL DEFAULT 0,
            longitude           REAL NOT NULL DEFAULT 0,
            year                TEXT NOT NULL DEFAULT ''
        );
        """)

        # 4. Keyword / people associations
        conn.execute("""
        CREATE TABLE IF NOT EXISTS keywords (
            keyword     TEXT PRIMARY KEY
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS photos_keywords (
            photo_id    TEXT NOT NULL,
            keyword     TEXT NOT NULL,
            PRIMARY KEY (photo_id, keyword),
            FOREIGN KEY(photo_id) REFERENCES photos(id) ON DELETE CASCADE
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS people (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            name        TEXT NOT NULL UNIQUE,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS photos_people (
            photo_id    TEXT NOT NULL,
            person_id   INTEGER NOT NULL,
            PRIMARY KEY (photo_id, person_id),
            FOREIGN KEY(photo_id) REFERENCES photos(id) ON DELETE CASCADE,
            FOREIGN KEY(person_id) REFERENCES people(id) ON DELETE CASCADE
        );
        """)

        # 5. Settings (single row, id = 1)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            id                  INTEGER PRIMARY KEY CHECK (id = 1),
            library_path        TEXT NOT NULL DEFAULT '',
            max_workers         INTEGER NOT NULL,
            thumbnail_size      INTEGER NOT NULL,
            collector_schedule  TEXT NOT NULL
        );
        """)

        # 6. Indices for Performance
        conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_location ON photos(full_path, file_name, ext);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_folders_parent ON folders(parent_path, folder_name);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_keywords_keyword ON photos_keywords(keyword);")

    logging.debug("Database schema initialized.")
