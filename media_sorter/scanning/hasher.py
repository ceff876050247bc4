import hashlib
from pathlib import Path

from .. import config
from ..exceptions import HashError


class FileHasher:
    def compute_hash(self, path: Path) -> str:
        """
        Streams the file through SHA-256 in HASH_CHUNK_SIZE chunks and returns
        the lowercase hex digest. The file is never loaded whole.

        Raises:
            HashError: the file vanished or became unreadable mid-stream.
        """
        h = hashlib.sha256()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    h.update(chunk)
        except OSError as e:
            raise HashError(f"Cannot hash {path}: {e}") from e
        return h.hexdigest()
