"""
Reference Index: fingerprint -> the best copy seen so far.

Thread-safety model:
  - `_guard` protects the dicts themselves and is only held for dict access.
  - Each fingerprint key has its own lock. A worker holds it for the whole
    lookup -> arbitrate -> move -> update sequence of that key, so updates to
    one key are linearizable.
  - Perceptual matching across different keys goes through
    `match_or_claim()`: the scan and the registration of an in-flight
    "pending" claim happen under `_phash_guard`, so two visually similar
    files can never both conclude they are new originals.

Lock order: a worker may hold its own (unindexed, unclaimed) key and then
wait for an indexed or claimed key, never the reverse.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from ..exceptions import StaleIndexEntry
from ..models import FileRecord
from ..scanning.perceptual import PerceptualHasher


@dataclass
class PerceptualMatch:
    key: str
    record: Optional[FileRecord]   # None while the matched key is still being placed
    distance: int

    @property
    def pending(self) -> bool:
        return self.record is None


class ReferenceIndex:
    def __init__(self):
        self._guard = threading.Lock()
        self._phash_guard = threading.Lock()
        self._entries: Dict[str, FileRecord] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._pending: Dict[str, str] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._entries

    # --- Per-key serialization ---

    def key_lock(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        with self.key_lock(key):
            yield

    # --- Entries ---

    def lookup(self, key: str) -> Optional[FileRecord]:
        """
        Returns the current record for key, evicting it first if its file has
        vanished from disk.
        """
        with self._guard:
            record = self._entries.get(key)
        if record is None:
            return None
        try:
            self._verify(key, record)
        except StaleIndexEntry as e:
            logging.warning(f"Evicting stale index entry: {e}")
            self._evict_if_current(key, record)
            return None
        return record

    def put(self, key: str, record: FileRecord):
        record.index_key = key
        with self._guard:
            self._entries[key] = record

    def evict(self, key: str) -> Optional[FileRecord]:
        with self._guard:
            return self._entries.pop(key, None)

    def reset(self):
        with self._phash_guard, self._guard:
            self._entries.clear()
            self._pending.clear()

    def snapshot(self) -> List[Tuple[str, FileRecord]]:
        with self._guard:
            return list(self._entries.items())

    def load(self, entries: List[Tuple[str, FileRecord]]):
        for key, record in entries:
            self.put(key, record)
        logging.info(f"Reference index loaded with {len(entries)} entries")

    def _verify(self, key: str, record: FileRecord):
        if not record.path.exists():
            raise StaleIndexEntry(key, record.path)

    def _evict_if_current(self, key: str, record: FileRecord):
        with self._guard:
            if self._entries.get(key) is record:
                del self._entries[key]

    # --- Perceptual matching ---

    def match_or_claim(self,
                       key: str,
                       phash: str,
                       hasher: PerceptualHasher) -> Optional[PerceptualMatch]:
        """
        Finds the closest entry (or in-flight claim) perceptually similar to
        phash. If there is none, registers a pending claim for key so that
        concurrent similar files find it; the caller must release_claim(key)
        once its entry is in place (or its placement failed).
        """
        with self._phash_guard:
            best: Optional[PerceptualMatch] = None
            for other_key, record in self.snapshot():
                if other_key == key or not record.phash:
                    continue
                best = self._closer(best, other_key, record, record.phash, phash, hasher)

            with self._guard:
                pending = list(self._pending.items())
            for other_key, other_phash in pending:
                if other_key != key:
                    best = self._closer(best, other_key, None, other_phash, phash, hasher)

            if best is None:
                with self._guard:
                    self._pending[key] = phash
                return None

        if best.record is not None and not best.record.path.exists():
            logging.warning(f"Evicting stale index entry {best.key[:12]} found by perceptual match")
            self._evict_if_current(best.key, best.record)
            return self.match_or_claim(key, phash, hasher)
        return best

    def release_claim(self, key: str):
        with self._guard:
            self._pending.pop(key, None)

    def _closer(self, best, key, record, candidate_phash, phash, hasher) -> Optional[PerceptualMatch]:
        if not hasher.are_similar(phash, candidate_phash):
            return best
        dist = hasher.distance(phash, candidate_phash)
        if dist is None:
            return best
        if best is None or dist < best.distance:
            return PerceptualMatch(key=key, record=record, distance=dist)
        return best
