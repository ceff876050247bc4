"""
Deterministic original-vs-duplicate arbitration between two colliding files.

KEEP_BEST runs the full ladder below; the other strategies put their own
criterion in front of it and let the ladder break remaining ties.

Images:
  1. dual superiority (strictly larger bytes AND strictly more pixels)
  2. byte size, when the gap exceeds SIZE_TIE_TOLERANCE of the larger file
  3. resolved capture date, earlier wins
  4. filesystem modified time, older wins
  5. filename without an OS copy suffix wins
  6. first argument

Videos use the same steps 1-3; once dates tie, any byte-size difference
decides, then frame resolution, then steps 4-6.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .. import config
from ..metadata.dates import resolve_capture_date
from ..models import ComparisonResult, DuplicateStrategy, FileRecord, MediaKind, MediaMetadata
from .patterns import has_os_duplicate_pattern

# A rule returns +1 if A is the original, -1 if B is, 0 on a tie, plus a reason
Verdict = Tuple[int, str]


def _sign(value) -> int:
    return (value > 0) - (value < 0)


class QualityArbitrator:
    def __init__(self,
                 strategy: DuplicateStrategy = DuplicateStrategy.KEEP_BEST,
                 size_tolerance: float = config.SIZE_TIE_TOLERANCE):
        self.strategy = strategy
        self.size_tolerance = size_tolerance

    def compare(self,
                file_a: FileRecord,
                file_b: FileRecord,
                meta_a: Optional[MediaMetadata] = None,
                meta_b: Optional[MediaMetadata] = None) -> ComparisonResult:
        meta_a = meta_a if meta_a is not None else file_a.metadata
        meta_b = meta_b if meta_b is not None else file_b.metadata

        for rule in self._ladder(file_a, file_b):
            verdict, reason = rule(file_a, file_b, meta_a, meta_b)
            if verdict != 0:
                break
            logging.debug(f"[QUALITY] tie on {rule.__name__}")
        else:
            verdict, reason = 1, "complete tie, keeping first"

        a_wins = verdict > 0
        result = ComparisonResult(
            original=file_a if a_wins else file_b,
            duplicate=file_b if a_wins else file_a,
            original_metadata=meta_a if a_wins else meta_b,
            duplicate_metadata=meta_b if a_wins else meta_a,
            first_is_original=a_wins,
            reason=reason,
        )
        logging.info(f"[QUALITY] {result.original.name} is original, "
                     f"{result.duplicate.name} is duplicate ({reason})")
        return result

    def _ladder(self, a: FileRecord, b: FileRecord) -> List[Callable]:
        ladder: List[Callable] = []
        if self.strategy is DuplicateStrategy.KEEP_LARGEST:
            ladder.append(self._exact_size)
        elif self.strategy is DuplicateStrategy.KEEP_OLDEST:
            ladder.append(self._older_date)
        elif self.strategy is DuplicateStrategy.KEEP_NEWEST:
            ladder.append(self._newer_date)

        ladder += [self._dual_superiority, self._significant_size, self._older_date]

        if a.kind is MediaKind.VIDEO and b.kind is MediaKind.VIDEO:
            ladder += [self._exact_size, self._resolution]

        ladder += [self._older_mtime, self._clean_name]
        return ladder

    # --- Rules ---

    def _dual_superiority(self, a, b, meta_a, meta_b) -> Verdict:
        area_a, area_b = meta_a.pixel_area, meta_b.pixel_area
        if area_a is None or area_b is None:
            return 0, ""
        size_cmp = _sign(a.size_bytes - b.size_bytes)
        area_cmp = _sign(area_a - area_b)
        if size_cmp != 0 and size_cmp == area_cmp:
            return size_cmp, "larger file and higher resolution"
        return 0, ""

    def _significant_size(self, a, b, meta_a, meta_b) -> Verdict:
        larger = max(a.size_bytes, b.size_bytes)
        if larger == 0:
            return 0, ""
        if abs(a.size_bytes - b.size_bytes) > larger * self.size_tolerance:
            return _sign(a.size_bytes - b.size_bytes), "significantly larger file"
        return 0, ""

    def _exact_size(self, a, b, meta_a, meta_b) -> Verdict:
        return _sign(a.size_bytes - b.size_bytes), "larger file"

    def _dates(self, a, b, meta_a, meta_b) -> Tuple[Optional[datetime], Optional[datetime]]:
        return resolve_capture_date(a, meta_a), resolve_capture_date(b, meta_b)

    def _older_date(self, a, b, meta_a, meta_b) -> Verdict:
        date_a, date_b = self._dates(a, b, meta_a, meta_b)
        if date_a is None or date_b is None or date_a == date_b:
            return 0, ""
        return (1 if date_a < date_b else -1), "earlier capture date"

    def _newer_date(self, a, b, meta_a, meta_b) -> Verdict:
        verdict, _ = self._older_date(a, b, meta_a, meta_b)
        return -verdict, "later capture date"

    def _resolution(self, a, b, meta_a, meta_b) -> Verdict:
        area_a, area_b = meta_a.pixel_area, meta_b.pixel_area
        if area_a is None or area_b is None:
            return 0, ""
        return _sign(area_a - area_b), "higher frame resolution"

    def _older_mtime(self, a, b, meta_a, meta_b) -> Verdict:
        return _sign(b.mtime - a.mtime), "older modification time"

    def _clean_name(self, a, b, meta_a, meta_b) -> Verdict:
        copy_a = has_os_duplicate_pattern(a.source_name)
        copy_b = has_os_duplicate_pattern(b.source_name)
        if copy_a == copy_b:
            return 0, ""
        return (-1 if copy_a else 1), "filename without copy suffix"
