import sqlite3
import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional, List, Tuple

from ..models import FileRecord, MediaKind, MediaMetadata

_DATE_FIELDS = ("gps_datetime", "capture_datetime", "secondary_datetime")


class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def save_index(self, entries: List[Tuple[str, FileRecord]]) -> int:
        """
        Replaces the stored index snapshot with entries.
        Returns the number of rows written.
        """
        now_iso = datetime.now(UTC).isoformat()
        with self.conn:
            self.conn.execute("DELETE FROM index_entries")
            self.conn.executemany("""
                INSERT INTO index_entries (
                    key, path, kind, size_bytes, mtime, ctime, exact_hash, phash,
                    gps_datetime, capture_datetime, secondary_datetime,
                    device_make, device_model, gps_lat, gps_lon, width, height, source_name, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [self._to_row(key, rec, now_iso) for key, rec in entries])
        logging.info(f"Saved {len(entries)} index entries to catalog")
        return len(entries)

    def load_index(self) -> List[Tuple[str, FileRecord]]:
        cur = self.conn.cursor()
        cur.execute("""
            SELECT key, path, kind, size_bytes, mtime, ctime, exact_hash, phash,
                   gps_datetime, capture_datetime, secondary_datetime,
                   device_make, device_model, gps_lat, gps_lon, width, height, source_name
            FROM index_entries
        """)
        entries = []
        for row in cur.fetchall():
            try:
                entries.append((row[0], self._from_row(row)))
            except ValueError as e:
                logging.warning(f"Skipping unreadable catalog row {row[0][:12]}: {e}")
        return entries

    def count_entries(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM index_entries")
        return cur.fetchone()[0]

    @staticmethod
    def _to_row(key: str, rec: FileRecord, now_iso: str) -> tuple:
        meta = rec.metadata
        dates = [getattr(meta, f).isoformat() if getattr(meta, f) else None for f in _DATE_FIELDS]
        return (
            key, str(rec.path), rec.kind.value, rec.size_bytes, rec.mtime, rec.ctime,
            rec.exact_hash, rec.phash, *dates,
            meta.device_make, meta.device_model, meta.gps_lat, meta.gps_lon,
            meta.width, meta.height, rec.source_name, now_iso,
        )

    @staticmethod
    def _from_row(row) -> FileRecord:
        (key, path, kind, size_bytes, mtime, ctime, exact_hash, phash,
         gps_dt, capture_dt, secondary_dt, make, model, lat, lon, width, height, source_name) = row

        def parse(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        metadata = MediaMetadata(
            gps_datetime=parse(gps_dt),
            capture_datetime=parse(capture_dt),
            secondary_datetime=parse(secondary_dt),
            device_make=make,
            device_model=model,
            gps_lat=lat,
            gps_lon=lon,
            width=width,
            height=height,
        )
        return FileRecord(
            path=Path(path),
            kind=MediaKind(kind),
            size_bytes=size_bytes,
            mtime=mtime,
            ctime=ctime,
            metadata=metadata,
            exact_hash=exact_hash or key,
            phash=phash,
            index_key=key,
            source_name=source_name,
        )
