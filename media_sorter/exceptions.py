"""
Custom exception hierarchy for the media sorter.

Everything below MediaSorterError except BaseDirectoryError is a per-file
condition: it is caught, logged and counted, never allowed to end a run.
"""


class MediaSorterError(Exception):
    """Base exception for all media sorter errors."""
    pass


class HashError(MediaSorterError):
    """Raised when a file cannot be read while fingerprinting it."""
    pass


class MetadataUnavailable(MediaSorterError):
    """Raised by extractors when a file yields no usable metadata."""
    pass


class StaleIndexEntry(MediaSorterError):
    """Raised when an index entry points at a file that no longer exists."""

    def __init__(self, key: str, path):
        super().__init__(f"Index entry {key[:12]} points to missing file {path}")
        self.key = key
        self.path = path


class PlacementError(MediaSorterError):
    """Raised when a move or folder creation fails."""
    pass


class UndoError(MediaSorterError):
    """Raised when a single journaled operation cannot be reversed."""
    pass


class BaseDirectoryError(MediaSorterError):
    """Raised when the target/base directory cannot be used at all."""
    pass
