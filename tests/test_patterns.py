import pytest
from media_sorter.organization.patterns import (
    remove_numbered_suffix,
    has_os_duplicate_pattern,
    is_burst_sequence,
    is_raw_jpeg_pair,
    is_companion_pair,
)

@pytest.mark.parametrize("name,expected", [
    ("ADLZ2152 - Copy.JPG", "ADLZ2152.JPG"),
    ("AFBO7949 - Copy (2).JPG", "AFBO7949.JPG"),
    ("Photo (1).jpg", "Photo.jpg"),
    ("Photo(3).jpg", "Photo.jpg"),
    ("holiday copy 2.png", "holiday.png"),
    ("holidaycopy3.png", "holiday.png"),
    ("scan_copy_4.tif", "scan.tif"),
    ("IMG_001_1.jpg", "IMG_001.jpg"),
    ("IMG_9515.JPG", "IMG_9515.JPG"),
    ("DSC03215.JPG", "DSC03215.JPG"),
])
def test_remove_numbered_suffix(name, expected):
    assert remove_numbered_suffix(name) == expected

def test_remove_numbered_suffix_edge_cases():
    assert remove_numbered_suffix(None) is None
    # No extension: left alone
    assert remove_numbered_suffix("README (1)") == "README (1)"
    # Never strip a name down to nothing
    assert remove_numbered_suffix("(1).jpg") == "(1).jpg"

def test_has_os_duplicate_pattern():
    assert has_os_duplicate_pattern("ADLZ2152 - Copy.JPG")
    assert has_os_duplicate_pattern("Photo (1).jpg")
    assert not has_os_duplicate_pattern("IMG_9515.JPG")
    assert not has_os_duplicate_pattern(None)

def test_burst_sequence():
    assert is_burst_sequence("IMG_0146.JPG", "IMG_0147.JPG")
    assert is_burst_sequence("IMG_0147.JPG", "IMG_0146.JPG")
    assert is_burst_sequence("dsc03215.jpg", "DSC03216.JPG")

    assert not is_burst_sequence("IMG_001.JPG", "IMG_003.JPG")
    assert not is_burst_sequence("IMG_0146.JPG", "IMG_0146.JPG")
    assert not is_burst_sequence("IMG_0146.JPG", "DSC_0147.JPG")
    # Pure numbers have no alphabetic prefix
    assert not is_burst_sequence("0146.JPG", "0147.JPG")
    assert not is_burst_sequence("IMG_0146.JPG", None)

def test_raw_jpeg_pair():
    assert is_raw_jpeg_pair("IMG_1234.CR2", "IMG_1234.JPG")
    assert is_raw_jpeg_pair("img_1234.jpg", "IMG_1234.dng")

    assert not is_raw_jpeg_pair("IMG_1234.JPG", "IMG_1234.JPEG")
    assert not is_raw_jpeg_pair("IMG_1234.CR2", "IMG_1235.JPG")
    assert not is_raw_jpeg_pair("IMG_1234.CR2", "IMG_1234.NEF")
    assert not is_raw_jpeg_pair(None, "IMG_1234.JPG")

def test_companion_pair():
    assert is_companion_pair("IMG_0146.JPG", "IMG_0147.JPG")
    assert is_companion_pair("IMG_1234.ARW", "IMG_1234.jpg")
    assert not is_companion_pair("IMG_1234.JPG", "IMG_1234 (1).JPG")
