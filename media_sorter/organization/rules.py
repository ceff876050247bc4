import re
import threading
from pathlib import Path
from datetime import datetime
from collections import defaultdict
from typing import Optional

from .. import config
from ..metadata.dates import resolve_capture_date
from ..models import FileRecord, MediaKind
from .patterns import remove_numbered_suffix

_UNSAFE_PATH_CHARS = re.compile(r'[\\/:*?"<>|]+')


def sanitize_for_path(value: str) -> str:
    return _UNSAFE_PATH_CHARS.sub('_', value).strip(' ._')


class FolderPatternResolver:
    """
    Expands folder patterns such as "{year}/{year-month}/{device}".

    Tokens: {year} {month} {day} {year-month} {year-month-day} {device}
    {extension}. Tokens with no value collapse away together with their
    separator.
    """

    def resolve(self, pattern: str, record: FileRecord, date: Optional[datetime]) -> str:
        resolved = pattern
        if date is not None:
            # Longest tokens first so "{year}" does not eat "{year-month}"
            resolved = resolved.replace("{year-month-day}", date.strftime("%Y-%m-%d"))
            resolved = resolved.replace("{year-month}", date.strftime("%Y-%m"))
            resolved = resolved.replace("{year}", date.strftime("%Y"))
            resolved = resolved.replace("{month}", date.strftime("%m"))
            resolved = resolved.replace("{day}", date.strftime("%d"))

        meta = record.metadata
        device = meta.device_model or meta.device_make
        resolved = resolved.replace("{device}", sanitize_for_path(device) if device else "")
        resolved = resolved.replace("{extension}", record.ext.lstrip('.'))

        parts = [p for p in resolved.split('/') if p.strip()]
        return '/'.join(parts)


class DestinationPlanner:
    """
    Computes target folders and hands out collision-free filenames.

    Names are reserved in memory as well as checked on disk, so two workers
    placing different files with the same cleaned name never pick the same
    destination.
    """

    def __init__(self,
                 dest_root: Path,
                 pattern: str = config.FOLDER_PATTERN,
                 resolver: Optional[FolderPatternResolver] = None):
        self.dest_root = dest_root
        self.pattern = pattern
        self.resolver = resolver or FolderPatternResolver()
        # Cache used names to prevent collisions within a single run
        self.used_names = defaultdict(set)
        self._lock = threading.Lock()

    def target_dir(self, record: FileRecord) -> Path:
        if record.kind is MediaKind.OTHER:
            return self.dest_root / config.OTHERS_DIRNAME

        base = config.VIDEOS_DIRNAME if record.kind is MediaKind.VIDEO else config.IMAGES_DIRNAME
        date = resolve_capture_date(record)
        if date is None:
            return self.dest_root / base / config.UNKNOWN_DATE_DIRNAME

        relative = self.resolver.resolve(self.pattern, record, date)
        return self.dest_root / base / relative if relative else self.dest_root / base

    def duplicates_dir(self, original_path: Path) -> Path:
        """The 'Duplicates' folder that sits beside an original's destination."""
        return original_path.parent / config.DUPLICATES_DIRNAME

    def reserve(self, folder: Path, filename: str) -> Path:
        """
        Strips OS copy markers from filename, then appends (1), (2), ... until
        the name is free both on disk and among in-flight reservations.
        """
        clean = remove_numbered_suffix(filename)
        stem = Path(clean).stem
        ext = Path(clean).suffix

        with self._lock:
            taken = self.used_names[folder]
            candidate = clean
            counter = 1
            while candidate in taken or (folder / candidate).exists():
                candidate = f"{stem}({counter}){ext}"
                counter += 1
            taken.add(candidate)
        return folder / candidate

    def claim(self, path: Path):
        """Marks an exact path (e.g. a takeover target) as taken."""
        with self._lock:
            self.used_names[path.parent].add(path.name)

    def release(self, path: Path):
        """Frees a reservation whose move never happened."""
        with self._lock:
            self.used_names[path.parent].discard(path.name)
