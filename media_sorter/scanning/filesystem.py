import os
import logging
from pathlib import Path
from typing import Iterator, Set, Optional

from .. import config
from ..models import FileRecord, MediaKind, MediaMetadata
from ..metadata.extract import MetadataExtractor


def classify(path: Path) -> MediaKind:
    """Derives the media kind from the extension. AppleDouble '._' files are 'other'."""
    if path.name.startswith("._"):
        return MediaKind.OTHER
    return MediaKind(config.EXT_TO_KIND.get(path.suffix.lower(), 'other'))


class DiskScanner:
    def __init__(self, metadata: Optional[MetadataExtractor] = None):
        self.metadata = metadata or MetadataExtractor()

    def iter_files(self, root: Path, skip_dirs: Optional[Set[Path]] = None) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        skip_dirs = skip_dirs or set()
        stack = [root]
        while stack:
            current = stack.pop()
            if skip_dirs and any(sd == current or sd in current.parents for sd in skip_dirs):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError:
                logging.warning(f"Cannot list directory: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f

    def build_record(self, path: Path, with_metadata: bool = True) -> FileRecord:
        """
        Stats and classifies one file. Raises OSError if the file vanished.
        Metadata resolution never raises.
        """
        stat_result = path.stat()
        kind = classify(path)

        # st_birthtime exists on macOS/BSD and recent Windows builds only
        ctime = getattr(stat_result, "st_birthtime", None) or stat_result.st_ctime

        if with_metadata and kind is not MediaKind.OTHER:
            metadata = self.metadata.resolve(path, kind)
        else:
            metadata = MediaMetadata(is_other=kind is MediaKind.OTHER)

        return FileRecord(
            path=path,
            kind=kind,
            size_bytes=stat_result.st_size,
            mtime=stat_result.st_mtime,
            ctime=ctime,
            metadata=metadata,
            source_name=path.name,
        )
