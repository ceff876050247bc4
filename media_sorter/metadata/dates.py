"""
Resolved-date logic shared by placement (folder buckets) and arbitration.

Priority: GPS timestamp > primary capture timestamp > secondary container
timestamp > filesystem creation time > filesystem modified time. Candidates
outside the plausible window are skipped, not clamped.
"""
from datetime import datetime, timedelta
from typing import Optional

from .. import config
from ..models import FileRecord, MediaMetadata


def is_plausible(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if dt is None:
        return False
    now = now or datetime.now()
    if dt.tzinfo is not None:
        dt = dt.replace(tzinfo=None)
    return dt.year >= config.MIN_PLAUSIBLE_YEAR and dt <= now + timedelta(days=config.MAX_FUTURE_DAYS)


def _from_timestamp(ts: Optional[float]) -> Optional[datetime]:
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts)
    except (OverflowError, OSError, ValueError):
        return None


def resolve_capture_date(record: FileRecord,
                         metadata: Optional[MediaMetadata] = None) -> Optional[datetime]:
    """Returns the best plausible date for the record, or None if none qualifies."""
    meta = metadata if metadata is not None else record.metadata
    candidates = [
        meta.gps_datetime,
        meta.capture_datetime,
        meta.secondary_datetime,
        _from_timestamp(record.ctime),
        _from_timestamp(record.mtime),
    ]
    now = datetime.now()
    for dt in candidates:
        if is_plausible(dt, now):
            return dt.replace(tzinfo=None)
    return None
