"""
Placement/Reorganization Engine.

For each incoming file: fingerprint it, consult the Reference Index, and
either file it as a new original, file it as a duplicate of the indexed copy,
or demote the indexed copy and take over its place. All of it happens while
holding the fingerprint's key lock, and the index is only updated after the
moves are confirmed on disk.
"""
import logging
from pathlib import Path
from typing import Callable, List, Optional

from ..exceptions import HashError, PlacementError
from ..models import Decision, DuplicateStrategy, FileRecord, MediaKind, PlacementEvent
from ..scanning.hasher import FileHasher
from ..scanning.perceptual import PerceptualHasher
from .index import ReferenceIndex
from .mover import FileMover
from .patterns import is_companion_pair
from .quality import QualityArbitrator
from .rules import DestinationPlanner

PlacementListener = Callable[[PlacementEvent], None]


class PlacementEngine:
    def __init__(self,
                 index: ReferenceIndex,
                 planner: DestinationPlanner,
                 mover: FileMover,
                 arbitrator: Optional[QualityArbitrator] = None,
                 hasher: Optional[FileHasher] = None,
                 phasher: Optional[PerceptualHasher] = None,
                 listeners: Optional[List[PlacementListener]] = None):
        self.index = index
        self.planner = planner
        self.mover = mover
        self.arbitrator = arbitrator or QualityArbitrator()
        self.hasher = hasher or FileHasher()
        # None disables the near-duplicate path
        self.phasher = phasher
        self.listeners: List[PlacementListener] = list(listeners or [])

    def add_listener(self, listener: PlacementListener):
        self.listeners.append(listener)

    def mark_unresolved(self, source: Path, reason: str, key: Optional[str] = None) -> Decision:
        self._emit(source, None, Decision.UNRESOLVED, key=key, note=reason)
        return Decision.UNRESOLVED

    def place(self, record: FileRecord) -> Decision:
        source = record.path
        try:
            if record.kind is MediaKind.OTHER:
                return self._place_other(record)

            try:
                key = record.exact_hash or self.hasher.compute_hash(record.path)
            except HashError as e:
                logging.warning(f"Unresolved (unreadable): {e}")
                return self.mark_unresolved(source, str(e))
            record.exact_hash = key

            if record.kind is MediaKind.IMAGE and self.phasher is not None and record.phash is None:
                record.phash = self.phasher.compute_hash(record.path)

            with self.index.locked(key):
                existing = self.index.lookup(key)
                if existing is not None:
                    return self._resolve_collision(key, record, existing, perceptual=False)
                if record.phash and self.phasher is not None:
                    return self._place_image_miss(key, record)
                return self._place_new(key, record)

        except (PlacementError, OSError) as e:
            logging.error(f"Unresolved, left in place: {source}: {e}")
            return self.mark_unresolved(source, str(e), key=record.exact_hash)

    # --- Cases ---

    def _place_image_miss(self, key: str, record: FileRecord) -> Decision:
        """Exact miss for an image: look for a perceptual twin before filing as new."""
        while True:
            match = self.index.match_or_claim(key, record.phash, self.phasher)
            if match is None:
                try:
                    return self._place_new(key, record)
                finally:
                    self.index.release_claim(key)

            if match.pending:
                # A similar image is being placed right now; wait for it, then look again
                with self.index.locked(match.key):
                    pass
                continue

            with self.index.locked(match.key):
                current = self.index.lookup(match.key)
                if current is None:
                    continue
                if current is not match.record and not self.phasher.are_similar(current.phash, record.phash):
                    continue
                logging.info(f"Perceptual duplicate: {record.name} ~ {current.name} (distance {match.distance})")
                return self._resolve_collision(match.key, record, current, perceptual=True)

    def _resolve_collision(self, key: str, incoming: FileRecord, existing: FileRecord, perceptual: bool) -> Decision:
        if incoming.path == existing.path:
            logging.debug(f"Already placed as original: {incoming.path}")
            self._emit(incoming.path, incoming.path, Decision.NEW_ORIGINAL, key=key, note="already in place")
            return Decision.NEW_ORIGINAL

        if is_companion_pair(incoming.source_name, existing.source_name):
            logging.info(f"{incoming.source_name} / {existing.source_name} look like companions, not duplicates")
            return self._place_independent(incoming, note="burst or RAW+JPEG companion")

        if self.arbitrator.strategy is DuplicateStrategy.KEEP_BOTH:
            return self._place_independent(incoming, note="keep-both strategy")

        # Indexed copy goes first so a complete tie leaves it in place
        result = self.arbitrator.compare(existing, incoming)
        kind = "perceptual" if perceptual else "exact"

        if result.original is existing:
            source = incoming.path
            dest = self._move_reserved(incoming, self.planner.duplicates_dir(existing.path))
            logging.info(f"Duplicate: {source} -> {dest}")
            self._emit(source, dest, Decision.FILED_AS_DUPLICATE, key=key,
                       note=f"{kind} duplicate of {existing.path} ({result.reason})")
            return Decision.FILED_AS_DUPLICATE

        return self._take_over(key, incoming, existing, note=f"{kind} upgrade ({result.reason})")

    def _take_over(self, key: str, incoming: FileRecord, existing: FileRecord, note: str) -> Decision:
        """
        Demotes the indexed original into Duplicates and moves incoming into
        its place. If the second move fails the first one is reversed.
        """
        source = incoming.path
        old_path = existing.path
        if incoming.ext == existing.ext:
            target = old_path
            # Keep the vacated name away from other workers between the two moves
            self.planner.claim(target)
        else:
            # Perceptual winner in another format keeps the old stem, not the old extension
            target = self.planner.reserve(old_path.parent, old_path.stem + incoming.path.suffix)

        try:
            dup_dest = self._move_reserved(existing, self.planner.duplicates_dir(old_path))
        except PlacementError:
            if target != old_path:
                self.planner.release(target)
            raise

        try:
            self.mover.move(incoming.path, target, content_hash=incoming.exact_hash)
            self._confirm(target)
        except PlacementError:
            if target != old_path:
                self.planner.release(target)
            self._roll_back(existing, dup_dest, old_path)
            raise

        if not self.mover.dry_run:
            incoming.path = target
        self.index.put(key, incoming)
        logging.info(f"Replaced original: {source} -> {target}, {old_path} -> {dup_dest}")
        self._emit(old_path, dup_dest, Decision.FILED_AS_DUPLICATE, key=key, note=f"demoted by {incoming.name}")
        self._emit(source, target, Decision.REPLACED_ORIGINAL, key=key, note=note)
        return Decision.REPLACED_ORIGINAL

    def _place_new(self, key: str, record: FileRecord) -> Decision:
        source = record.path
        dest = self._move_reserved(record, self.planner.target_dir(record))
        self.index.put(key, record)
        logging.info(f"New original: {source} -> {dest}")
        self._emit(source, dest, Decision.NEW_ORIGINAL, key=key)
        return Decision.NEW_ORIGINAL

    def _place_independent(self, record: FileRecord, note: str) -> Decision:
        # Filed like a new original, but the index keeps pointing at the first copy
        source = record.path
        dest = self._move_reserved(record, self.planner.target_dir(record))
        self._emit(source, dest, Decision.NEW_ORIGINAL, key=record.exact_hash, note=note)
        return Decision.NEW_ORIGINAL

    def _place_other(self, record: FileRecord) -> Decision:
        source = record.path
        dest = self._move_reserved(record, self.planner.target_dir(record))
        self._emit(source, dest, Decision.FILED_AS_OTHER)
        return Decision.FILED_AS_OTHER

    # --- Helpers ---

    def _move_reserved(self, record: FileRecord, folder: Path) -> Path:
        """Moves record into folder under a reserved unique name and updates record.path."""
        dest = self.planner.reserve(folder, record.name)
        try:
            self.mover.move(record.path, dest, content_hash=record.exact_hash)
            self._confirm(dest)
        except PlacementError:
            self.planner.release(dest)
            raise
        if not self.mover.dry_run:
            record.path = dest
        return dest

    def _confirm(self, path: Path):
        if not self.mover.dry_run and not path.exists():
            raise PlacementError(f"Post-move check failed, {path} does not exist")

    def _roll_back(self, existing: FileRecord, dup_dest: Path, old_path: Path):
        try:
            self.mover.move(dup_dest, old_path, content_hash=existing.exact_hash)
        except PlacementError as e:
            logging.error(f"Rollback failed, original stays at {dup_dest}: {e}")
            return
        if not self.mover.dry_run:
            existing.path = old_path
        logging.warning(f"Rolled back demotion of {old_path}")

    def _emit(self, source: Optional[Path], dest: Optional[Path], decision: Decision,
              key: Optional[str] = None, note: str = ""):
        event = PlacementEvent(source=source, destination=dest, decision=decision, key=key, note=note)
        for listener in self.listeners:
            listener(event)
