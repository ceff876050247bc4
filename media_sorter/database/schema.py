"""
Catalog schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 2

def init_schema(conn: sqlite3.Connection):
    """
    Applies the catalog schema.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Reference Index snapshot, one row per fingerprint key
        conn.execute("""
        CREATE TABLE IF NOT EXISTS index_entries (
            key                 TEXT PRIMARY KEY,     -- SHA-256 the entry is indexed under
            path                TEXT NOT NULL,
            kind                TEXT NOT NULL,
            size_bytes          INTEGER NOT NULL,
            mtime               REAL NOT NULL,
            ctime               REAL NOT NULL,
            exact_hash          TEXT,
            phash               TEXT,
            gps_datetime        TEXT,
            capture_datetime    TEXT,
            secondary_datetime  TEXT,
            device_make         TEXT,
            device_model        TEXT,
            gps_lat             REAL,
            gps_lon             REAL,
            width               INTEGER,
            height              INTEGER,
            source_name         TEXT,                 -- file name as first scanned
            updated_at          TEXT NOT NULL
        );
        """)

        # 3. Catalogs written before source_name existed
        columns = {row[1] for row in conn.execute("PRAGMA table_info(index_entries)")}
        if "source_name" not in columns:
            conn.execute("ALTER TABLE index_entries ADD COLUMN source_name TEXT")
        conn.execute("UPDATE schema_version SET version = ?", (CURRENT_SCHEMA_VERSION,))

        conn.execute("CREATE INDEX IF NOT EXISTS idx_index_entries_phash ON index_entries(phash);")

    logging.debug("Catalog schema initialized.")
