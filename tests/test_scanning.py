import hashlib
import pytest
from pathlib import Path
from media_sorter.exceptions import HashError
from media_sorter.models import MediaKind
from media_sorter.scanning.filesystem import DiskScanner, classify
from media_sorter.scanning.hasher import FileHasher
from media_sorter.scanning.perceptual import PerceptualHasher
from media_sorter import config

def test_compute_file_hash(tmp_path):
    p = tmp_path / "sample.bin"
    # Spans several chunks
    data = b"hello world" * (config.HASH_CHUNK_SIZE // 4)
    p.write_bytes(data)

    assert FileHasher().compute_hash(p) == hashlib.sha256(data).hexdigest()

def test_hash_depends_only_on_content(tmp_path):
    a = tmp_path / "a.jpg"
    b = tmp_path / "other name.png"
    a.write_bytes(b"same bytes")
    b.write_bytes(b"same bytes")
    hasher = FileHasher()
    assert hasher.compute_hash(a) == hasher.compute_hash(b)

    b.write_bytes(b"same bytez")
    assert hasher.compute_hash(a) != hasher.compute_hash(b)

def test_hash_missing_file_raises(tmp_path):
    with pytest.raises(HashError):
        FileHasher().compute_hash(tmp_path / "gone.jpg")

def test_perceptual_near_duplicates_are_similar(image_factory):
    original = image_factory("orig.png", seed=1)
    reencoded = image_factory("small.jpg", seed=1, size=200, quality=70)
    different = image_factory("other.png", seed=2)

    hasher = PerceptualHasher()
    h_orig = hasher.compute_hash(original)
    h_reenc = hasher.compute_hash(reencoded)
    h_diff = hasher.compute_hash(different)

    assert len(h_orig) == 16
    assert hasher.are_similar(h_orig, h_reenc)
    assert hasher.distance(h_orig, h_reenc) <= config.PHASH_HAMMING_THRESHOLD
    assert not hasher.are_similar(h_orig, h_diff)

def test_perceptual_similarity_reflexive_and_symmetric(image_factory):
    hasher = PerceptualHasher()
    h1 = hasher.compute_hash(image_factory("a.png", seed=5))
    h2 = hasher.compute_hash(image_factory("b.jpg", seed=5, size=180, quality=60))

    assert hasher.are_similar(h1, h1)
    assert hasher.distance(h1, h1) == 0
    assert hasher.are_similar(h1, h2) == hasher.are_similar(h2, h1)
    assert hasher.distance(h1, h2) == hasher.distance(h2, h1)

def test_perceptual_hash_is_deterministic(image_factory):
    path = image_factory("a.png", seed=3)
    hasher = PerceptualHasher()
    assert hasher.compute_hash(path) == hasher.compute_hash(path)

def test_perceptual_undecodable_returns_none(tmp_path):
    bad = tmp_path / "broken.jpg"
    bad.write_bytes(b"not really a jpeg")
    hasher = PerceptualHasher()
    assert hasher.compute_hash(bad) is None
    assert not hasher.are_similar(None, "ffffffffffffffff")
    assert not hasher.are_similar("", "")
    assert hasher.distance("zz", "ffffffffffffffff") is None

def test_classify_extension():
    assert classify(Path("a.CR2")) is MediaKind.IMAGE
    assert classify(Path("a.jpg")) is MediaKind.IMAGE
    assert classify(Path("a.MOV")) is MediaKind.VIDEO
    assert classify(Path("notes.txt")) is MediaKind.OTHER
    # AppleDouble resource forks
    assert classify(Path("._IMG_0001.JPG")) is MediaKind.OTHER

def test_scanner_iterates_and_skips(tmp_path):
    root = tmp_path
    skip_dir = root / "skip"
    skip_dir.mkdir()
    (skip_dir / "skip.txt").write_text("skip")

    sub = root / "a"
    sub.mkdir()
    (sub / "b.txt").write_text("b")
    (root / "c.txt").write_text("c")

    files = list(DiskScanner().iter_files(root, skip_dirs={skip_dir}))

    assert (skip_dir / "skip.txt") not in files
    assert (root / "c.txt") in files
    assert (sub / "b.txt") in files

def test_build_record(tmp_path, image_factory):
    img = image_factory("photo.png", seed=1)
    other = tmp_path / "src" / "notes.txt"
    other.write_text("hello")

    scanner = DiskScanner()
    rec = scanner.build_record(img)
    assert rec.kind is MediaKind.IMAGE
    assert rec.size_bytes == img.stat().st_size
    assert (rec.metadata.width, rec.metadata.height) == (256, 256)
    assert rec.exact_hash is None

    other_rec = scanner.build_record(other)
    assert other_rec.kind is MediaKind.OTHER
    assert other_rec.metadata.is_other

    with pytest.raises(OSError):
        scanner.build_record(tmp_path / "vanished.jpg")
