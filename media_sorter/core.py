import os
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Set

from tqdm import tqdm

from .database.db import CatalogManager
from .exceptions import BaseDirectoryError
from .journal.checkpoint import CheckpointStore
from .journal.transactions import TransactionJournal
from .journal.undo import UndoEngine
from .models import Checkpoint, Decision, DuplicateStrategy, UndoResult
from .organization.index import ReferenceIndex
from .organization.mover import FileMover
from .organization.placement import PlacementEngine
from .organization.quality import QualityArbitrator
from .organization.rules import DestinationPlanner
from .reporting import PlacementReport
from .scanning.filesystem import DiskScanner
from .scanning.hasher import FileHasher
from .scanning.perceptual import PerceptualHasher
from . import config

# Files the app itself writes into the base directory
_INTERNAL_FILES = {
    config.CHECKPOINT_FILENAME,
    config.CATALOG_FILENAME,
    f"{config.CATALOG_FILENAME}-wal",
    f"{config.CATALOG_FILENAME}-shm",
    config.RESUME_INDEX_FILENAME,
    f"{config.RESUME_INDEX_FILENAME}-wal",
    f"{config.RESUME_INDEX_FILENAME}-shm",
    config.LOG_FILENAME,
}


class MediaSorterApp:
    def __init__(self, base_dir: Path, journal: Optional[TransactionJournal] = None):
        self.base_dir = base_dir
        self.journal = journal or TransactionJournal()
        self.checkpoints = CheckpointStore(base_dir)

    def organize(self,
                 src_root: Path,
                 strategy: DuplicateStrategy = DuplicateStrategy.KEEP_BEST,
                 max_workers: int = config.DEFAULT_MAX_WORKERS,
                 pattern: str = config.FOLDER_PATTERN,
                 use_phash: bool = True,
                 cross_run: bool = False,
                 resume: bool = False,
                 dry_run: bool = False,
                 skip_dirs: Optional[Set[Path]] = None,
                 cleanup_empty: bool = False,
                 stop_event: Optional[threading.Event] = None,
                 show_progress: bool = True) -> PlacementReport:
        """
        Sorts every file under src_root into the base directory.

        1. Scan the source tree
        2. Place each file on a worker thread (hash, compare, move)
        3. Persist journal, checkpoint and (optionally) the catalog
        4. Optionally remove source folders the run left empty

        Setting stop_event stops the run between files; files already being
        placed finish first. The checkpoint and the index built so far are
        saved together, so a resumed run still sees the files already placed.
        """
        self._check_base_dir(dry_run)
        if not src_root.is_dir():
            raise BaseDirectoryError(f"Source directory does not exist: {src_root}")

        stop_event = stop_event or threading.Event()
        report = PlacementReport()
        index = ReferenceIndex()

        catalog = CatalogManager.for_base(self.base_dir) if cross_run else None
        if catalog is not None and (not dry_run or catalog.exists):
            catalog.load_into(index)

        # --- Step 1: Scanning ---
        checkpoint = self._load_checkpoint(resume)
        resume_index = CatalogManager.for_resume(self.base_dir)
        if resume and checkpoint.processed_count and resume_index.exists:
            logging.info("Restoring reference index of the interrupted run")
            resume_index.load_into(index)
        scanner = DiskScanner()
        skips = self._skip_dirs(skip_dirs)
        logging.info(f"Scanning {src_root}...")
        files = [
            p for p in scanner.iter_files(src_root, skips)
            if not (p.parent == self.base_dir and p.name in _INTERNAL_FILES)
            and not checkpoint.is_file_processed(str(p))
        ]
        checkpoint.total_count = checkpoint.processed_count + len(files)
        logging.info(f"Found {len(files)} files to process")

        # --- Step 2: Placement ---
        if not dry_run:
            self.journal.start_session(self.base_dir)

        engine = PlacementEngine(
            index=index,
            planner=DestinationPlanner(self.base_dir, pattern),
            mover=FileMover(self.journal, dry_run=dry_run),
            arbitrator=QualityArbitrator(strategy),
            hasher=FileHasher(),
            phasher=PerceptualHasher() if use_phash else None,
            listeners=[report],
        )

        try:
            self._run_pool(engine, scanner, files, checkpoint, stop_event, max_workers, dry_run, show_progress)
        finally:
            # --- Step 3: Persistence ---
            if not dry_run:
                self.journal.end_session()
                if catalog is not None:
                    catalog.save_from(index)
                if stop_event.is_set():
                    self.checkpoints.save(checkpoint)
                    resume_index.save_from(index)
                else:
                    self.checkpoints.delete()
                    resume_index.delete()
            resume_index.close()
            if catalog is not None:
                catalog.close()

        # --- Step 4: Cleanup ---
        if cleanup_empty and not dry_run and not stop_event.is_set():
            self._remove_empty_dirs(src_root, skips, report)

        logging.info(f"Organization complete. {report.summary()}")
        return report

    def undo(self, session_id: str, show_progress: bool = True) -> UndoResult:
        return UndoEngine(self.journal).undo(session_id, self.base_dir, show_progress=show_progress)

    def list_sessions(self) -> List[str]:
        return self.journal.list_sessions(self.base_dir)

    # --- Internals ---

    def _run_pool(self, engine, scanner, files, checkpoint, stop_event, max_workers, dry_run, show_progress):
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            future_to_path = {
                executor.submit(self._process_file, engine, scanner, path, stop_event): path
                for path in files
            }
            try:
                with tqdm(total=len(future_to_path), desc="Organizing", unit="file", disable=not show_progress) as pbar:
                    for future in as_completed(future_to_path):
                        path = future_to_path[future]
                        pbar.update(1)
                        try:
                            decision = future.result()
                        except Exception as e:
                            logging.exception(f"Failed to process {path}: {e}")
                            continue
                        if decision is None or decision is Decision.UNRESOLVED:
                            # Cancelled or failed; a resumed run tries it again
                            continue

                        checkpoint.add_processed_file(str(path))
                        if not dry_run and checkpoint.processed_count % config.CHECKPOINT_INTERVAL == 0:
                            self.checkpoints.save(checkpoint)
            except KeyboardInterrupt:
                logging.warning("Cancellation requested, waiting for in-flight files...")
                stop_event.set()
                raise

    def _process_file(self, engine: PlacementEngine, scanner: DiskScanner, path: Path,
                      stop_event: threading.Event) -> Optional[Decision]:
        """Worker body. Returns None when the file was skipped because of cancellation."""
        if stop_event.is_set():
            return None
        try:
            record = scanner.build_record(path)
        except OSError as e:
            logging.warning(f"Skipping {path}: {e}")
            return engine.mark_unresolved(path, str(e))
        return engine.place(record)

    def _check_base_dir(self, dry_run: bool):
        base = self.base_dir
        if base.exists() and not base.is_dir():
            raise BaseDirectoryError(f"Base directory is not a directory: {base}")
        if dry_run:
            return
        try:
            base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BaseDirectoryError(f"Cannot create base directory {base}: {e}") from e
        if not os.access(base, os.W_OK):
            raise BaseDirectoryError(f"Base directory is not writable: {base}")

    def _skip_dirs(self, extra: Optional[Set[Path]]) -> Set[Path]:
        """Never rescan what a previous run already filed, nor the journal."""
        skips = set(extra or set())
        for name in (config.IMAGES_DIRNAME, config.VIDEOS_DIRNAME, config.OTHERS_DIRNAME,
                     config.TRANSACTIONS_DIRNAME):
            skips.add(self.base_dir / name)
        return skips

    def _remove_empty_dirs(self, src_root: Path, skips: Set[Path], report: PlacementReport):
        """
        Removes folders under src_root that are empty after the moves,
        deepest first. src_root, the base directory and skipped trees stay.
        Undoing the session recreates whatever folders the moves need.
        """
        protected = skips | {self.base_dir}
        removed = 0
        for root, _dirs, _files in os.walk(src_root, topdown=False):
            folder = Path(root)
            if folder == src_root or any(p == folder or p in folder.parents or folder in p.parents
                                         for p in protected):
                continue
            try:
                if any(folder.iterdir()):
                    continue
                folder.rmdir()
            except OSError as e:
                logging.warning(f"Could not remove empty folder {folder}: {e}")
                continue
            logging.info(f"Removed empty folder: {folder}")
            report.note_removed_dir(folder)
            removed += 1
        logging.info(f"Empty folder cleanup removed {removed} folders")

    def _load_checkpoint(self, resume: bool) -> Checkpoint:
        if resume:
            checkpoint = self.checkpoints.load()
            if checkpoint is not None:
                logging.info(f"Resuming: {checkpoint.processed_count} files already processed")
                return checkpoint
            logging.info("No checkpoint found, starting fresh")
        return Checkpoint()
