import pytest
from pathlib import Path
from datetime import datetime
from media_sorter.models import FileRecord, MediaKind, MediaMetadata, DuplicateStrategy
from media_sorter.organization.quality import QualityArbitrator

def rec(name, size, capture=None, width=None, height=None, mtime=1_600_000_000.0, kind=MediaKind.IMAGE):
    return FileRecord(
        path=Path("/lib") / name,
        kind=kind,
        size_bytes=size,
        mtime=mtime,
        ctime=mtime,
        metadata=MediaMetadata(capture_datetime=capture, width=width, height=height),
    )

def test_dual_superiority_beats_earlier_date():
    # Re-encoded low-quality copy carries the earlier date
    small_old = rec("a.jpg", 1_000_000, datetime(2015, 1, 1), 1000, 800)
    big_new = rec("b.jpg", 3_000_000, datetime(2020, 1, 1), 4000, 3000)

    result = QualityArbitrator().compare(small_old, big_new)
    assert result.original is big_new
    assert result.duplicate is small_old
    assert not result.first_is_original

def test_significant_size_difference_wins():
    a = rec("a.jpg", 2_000_000, datetime(2020, 1, 1))
    b = rec("b.jpg", 1_000_000, datetime(2015, 1, 1))
    assert QualityArbitrator().compare(a, b).original is a

def test_within_tolerance_falls_through_to_date():
    a = rec("a.jpg", 1_000_000, datetime(2020, 1, 1))
    b = rec("b.jpg", 980_000, datetime(2015, 1, 1))
    result = QualityArbitrator().compare(a, b)
    assert result.original is b
    assert "date" in result.reason

def test_tie_on_size_and_date_prefers_clean_name():
    a = rec("IMG_1234 - Copy.jpg", 1_000_000, datetime(2020, 1, 1))
    b = rec("IMG_1234.jpg", 1_000_000, datetime(2020, 1, 1))
    result = QualityArbitrator().compare(a, b)
    assert result.original is b
    assert result.duplicate is a

def test_older_mtime_before_name():
    a = rec("IMG_1234 (1).jpg", 1_000_000, datetime(2020, 1, 1), mtime=1_500_000_000.0)
    b = rec("IMG_1234.jpg", 1_000_000, datetime(2020, 1, 1), mtime=1_600_000_000.0)
    assert QualityArbitrator().compare(a, b).original is a

def test_complete_tie_keeps_first_argument():
    a = rec("x.jpg", 100, datetime(2020, 1, 1))
    b = rec("y.jpg", 100, datetime(2020, 1, 1))
    assert QualityArbitrator().compare(a, b).original is a
    assert QualityArbitrator().compare(b, a).original is b

@pytest.mark.parametrize("pair", [
    (rec("a.jpg", 1_000_000, datetime(2015, 1, 1), 1000, 800), rec("b.jpg", 3_000_000, datetime(2020, 1, 1), 4000, 3000)),
    (rec("a.jpg", 1_000_000, datetime(2020, 1, 1)), rec("b.jpg", 990_000, datetime(2015, 1, 1))),
    (rec("a (1).jpg", 500, datetime(2020, 1, 1)), rec("a.jpg", 500, datetime(2020, 1, 1))),
])
def test_symmetry(pair):
    a, b = pair
    arb = QualityArbitrator()
    assert arb.compare(a, b).original is arb.compare(b, a).original

def test_explicit_metadata_overrides_record_metadata():
    a = rec("a.jpg", 1_000_000)
    b = rec("b.jpg", 1_000_000)
    meta_a = MediaMetadata(capture_datetime=datetime(2019, 1, 1))
    meta_b = MediaMetadata(capture_datetime=datetime(2018, 1, 1))
    result = QualityArbitrator().compare(a, b, meta_a, meta_b)
    assert result.original is b
    assert result.original_metadata is meta_b

def test_video_ladder_exact_size_then_resolution():
    # Same date, sizes within tolerance: any byte difference decides for video
    a = rec("a.mp4", 1_000_000, datetime(2020, 1, 1), 1280, 720, kind=MediaKind.VIDEO)
    b = rec("b.mp4", 1_000_001, datetime(2020, 1, 1), 640, 480, kind=MediaKind.VIDEO)
    assert QualityArbitrator().compare(a, b).original is b

    c = rec("c.mp4", 1_000_000, datetime(2020, 1, 1), 1920, 1080, kind=MediaKind.VIDEO)
    d = rec("d.mp4", 1_000_000, datetime(2020, 1, 1), 1280, 720, kind=MediaKind.VIDEO)
    result = QualityArbitrator().compare(d, c)
    assert result.original is c
    assert "resolution" in result.reason

def test_strategies_put_their_criterion_first():
    older_small = rec("a.jpg", 1_000_000, datetime(2015, 1, 1), 1000, 800)
    newer_big = rec("b.jpg", 3_000_000, datetime(2020, 1, 1), 4000, 3000)

    assert QualityArbitrator(DuplicateStrategy.KEEP_OLDEST).compare(older_small, newer_big).original is older_small
    assert QualityArbitrator(DuplicateStrategy.KEEP_NEWEST).compare(older_small, newer_big).original is newer_big

    # Tiny difference still decides under keep-largest
    a = rec("a.jpg", 1_000_000, datetime(2015, 1, 1))
    b = rec("b.jpg", 1_000_010, datetime(2020, 1, 1))
    assert QualityArbitrator(DuplicateStrategy.KEEP_LARGEST).compare(a, b).original is b
    assert QualityArbitrator(DuplicateStrategy.KEEP_BEST).compare(a, b).original is a
