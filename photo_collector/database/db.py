"""
Catalog database connection shared by the settings provider, the catalog
store and every sync worker.
"""
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from ..exceptions import StorageError
from .schema import init_schema

MEMORY_DB = ":memory:"
BUSY_TIMEOUT_MS = 5000


class DBManager:
    def __init__(self, db_path: Union[Path, str]):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        # Workers write from their own threads through this single connection
        self._write_lock = threading.RLock()

    @property
    def in_memory(self) -> bool:
        return str(self.db_path) == MEMORY_DB

    def connect(self) -> sqlite3.Connection:
        """
        Opens the catalog (creating its directory and schema on first use)
        and returns the shared connection. Raises StorageError if the file
        cannot be opened.
        """
        if self._conn:
            return self._conn

        if not self.in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        logging.info(f"Opening catalog database: {self.db_path}")
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            if not self.in_memory:
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS};")
            conn.execute("PRAGMA foreign_keys=ON;")
            init_schema(conn)
        except sqlite3.Error as e:
            raise StorageError(f"could not open catalog database: {e}", path=str(self.db_path)) from e

        self._conn = conn
        return conn

    def close(self):
        with self._write_lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def write_lock(self) -> threading.RLock:
        """Lock every adapter built on this connection must hold."""
        return self._write_lock
