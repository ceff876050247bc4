"""
Filename-only predicates that keep look-alike files from being flagged as
duplicates, and that recognize OS-generated copy names.
No file content is ever inspected here.
"""
import re
from typing import Optional

from .. import config

# Ordered: each rule runs once, on the output of the previous one.
# Only these forms are stripped; long camera counters (IMG_9515) survive.
_COPY_SUFFIX_RULES = [
    re.compile(r'\s*-\s*[Cc]opy\s*\(\d+\)$'),   # "name - Copy (2)"
    re.compile(r'\s*-\s*[Cc]opy$'),             # "name - Copy"
    re.compile(r'\s+[Cc]opy\s+\d+$'),           # "name copy 2"
    re.compile(r'[Cc]opy\d+$'),                 # "namecopy2"
    re.compile(r'_[Cc]opy_\d+$'),               # "name_copy_2"
    re.compile(r'\s*\(\d+\)$'),                 # "name (2)", "name(2)"
    re.compile(r'_\d{1,2}$'),                   # "name_2", "name_12"
]

_TRAILING_NUMBER = re.compile(r'^(.*?)(\d+)$')


def _split_ext(filename: str) -> tuple[str, str]:
    dot = filename.rfind('.')
    if dot <= 0:
        return filename, ''
    return filename[:dot], filename[dot:]


def remove_numbered_suffix(filename: Optional[str]) -> Optional[str]:
    """
    Strips OS duplicate markers from a filename, keeping the extension.

        "ADLZ2152 - Copy.JPG"     -> "ADLZ2152.JPG"
        "AFBO7949 - Copy (2).JPG" -> "AFBO7949.JPG"
        "Photo (1).jpg"           -> "Photo.jpg"
        "IMG_001_1.jpg"           -> "IMG_001.jpg"
        "IMG_9515.JPG"            -> "IMG_9515.JPG"
    """
    if filename is None:
        return None

    stem, ext = _split_ext(filename)
    if not ext:
        return filename

    for rule in _COPY_SUFFIX_RULES:
        stripped = rule.sub('', stem)
        # Never strip a name down to nothing ("(1).jpg" stays as is)
        if stripped.strip():
            stem = stripped
    return stem + ext


def has_os_duplicate_pattern(filename: Optional[str]) -> bool:
    if filename is None:
        return False
    return remove_numbered_suffix(filename) != filename


def _trailing_number(filename: str) -> Optional[tuple[str, int]]:
    stem, _ = _split_ext(filename)
    m = _TRAILING_NUMBER.match(stem)
    if not m:
        return None
    return m.group(1), int(m.group(2))


def is_burst_sequence(filename1: Optional[str], filename2: Optional[str]) -> bool:
    """
    True for consecutive shutter counters under the same alphabetic prefix:
    IMG_0146.JPG / IMG_0147.JPG, DSC03215.JPG / DSC03216.JPG.
    """
    if filename1 is None or filename2 is None:
        return False

    a = _trailing_number(filename1)
    b = _trailing_number(filename2)
    if a is None or b is None:
        return False

    prefix1, n1 = a
    prefix2, n2 = b
    if not any(c.isalpha() for c in prefix1):
        return False
    if prefix1.casefold() != prefix2.casefold():
        return False
    return abs(n1 - n2) == 1


def is_raw_format(filename: Optional[str]) -> bool:
    if filename is None:
        return False
    return _split_ext(filename)[1].lower() in config.RAW_EXTS


def is_jpeg_format(filename: Optional[str]) -> bool:
    if filename is None:
        return False
    return _split_ext(filename)[1].lower() in config.JPEG_EXTS


def is_raw_jpeg_pair(filename1: Optional[str], filename2: Optional[str]) -> bool:
    """Same base name (case-insensitive), one RAW and one JPEG, in either order."""
    if filename1 is None or filename2 is None:
        return False

    if _split_ext(filename1)[0].casefold() != _split_ext(filename2)[0].casefold():
        return False

    return ((is_raw_format(filename1) and is_jpeg_format(filename2)) or
            (is_raw_format(filename2) and is_jpeg_format(filename1)))


def is_companion_pair(filename1: str, filename2: str) -> bool:
    """Pairs that collide on a fingerprint but must both be kept as originals."""
    return is_burst_sequence(filename1, filename2) or is_raw_jpeg_pair(filename1, filename2)
