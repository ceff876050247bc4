import os
import pytest
import sqlite3
from datetime import datetime
from pathlib import Path

import numpy
from PIL import Image

from media_sorter.database.schema import init_schema
from media_sorter.database.ops import DBOperations
from media_sorter.models import FileRecord, MediaKind, MediaMetadata

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def make_file(tmp_path):
    """Writes a file under tmp_path/src and optionally pins its mtime."""
    def _make(name: str, data: bytes, mtime: float = None, folder: str = "src") -> Path:
        path = tmp_path / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path
    return _make

@pytest.fixture
def make_record():
    """Builds a FileRecord for an existing file with explicit metadata."""
    def _make(path: Path,
              kind: MediaKind = MediaKind.IMAGE,
              capture: datetime = datetime(2021, 6, 15, 10, 0, 0),
              width: int = None,
              height: int = None,
              **meta) -> FileRecord:
        st = path.stat()
        return FileRecord(
            path=path,
            kind=kind,
            size_bytes=st.st_size,
            mtime=st.st_mtime,
            ctime=st.st_mtime,
            metadata=MediaMetadata(capture_datetime=capture, width=width, height=height, **meta),
        )
    return _make

def blocky_image(seed: int, size: int = 256) -> Image.Image:
    """Deterministic 8x8 block pattern scaled up, stable under resizing."""
    rng = numpy.random.default_rng(seed)
    blocks = rng.integers(0, 256, (8, 8, 3), dtype=numpy.uint8)
    return Image.fromarray(blocks, "RGB").resize((size, size), Image.Resampling.NEAREST)

@pytest.fixture
def image_factory(tmp_path):
    """Saves blocky test images; same seed + different size/format = near duplicate."""
    def _make(name: str, seed: int, size: int = 256, quality: int = 95, folder: str = "src") -> Path:
        path = tmp_path / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        img = blocky_image(seed, size)
        if path.suffix.lower() in (".jpg", ".jpeg"):
            img.save(path, "JPEG", quality=quality)
        else:
            img.save(path)
        return path
    return _make
