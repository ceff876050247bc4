"""
Catalog file holding the reference index between runs (--cross-run).
"""
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Optional

from .. import config
from .ops import DBOperations
from .schema import init_schema

class CatalogManager:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._write_lock = threading.Lock()

    @classmethod
    def for_base(cls, base_dir: Path) -> "CatalogManager":
        return cls(base_dir / config.CATALOG_FILENAME)

    @classmethod
    def for_resume(cls, base_dir: Path) -> "CatalogManager":
        return cls(base_dir / config.RESUME_INDEX_FILENAME)

    @property
    def exists(self) -> bool:
        return self.db_path.is_file()

    def connect(self) -> sqlite3.Connection:
        if self._conn:
            return self._conn

        logging.info(f"Opening catalog: {self.db_path}")
        # Saved from the main thread after the pool drains, read before it starts
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        init_schema(self._conn)
        return self._conn

    def load_into(self, index) -> int:
        """Feeds every catalog row into the index. Returns the row count."""
        entries = DBOperations(self.connect()).load_index()
        index.load(entries)
        return len(entries)

    def save_from(self, index) -> int:
        """Replaces the catalog contents with the index's current entries."""
        with self._write_lock:
            saved = DBOperations(self.connect()).save_index(index.snapshot())
        logging.info(f"Catalog saved with {saved} entries")
        return saved

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def delete(self):
        self.close()
        for suffix in ("", "-wal", "-shm"):
            Path(f"{self.db_path}{suffix}").unlink(missing_ok=True)

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
