import os
import shutil
import logging
from pathlib import Path
from typing import List, Optional

from ..exceptions import PlacementError
from ..journal.transactions import TransactionJournal
from ..models import OperationRecord, OperationType


class FileMover:
    """
    Performs the physical moves and folder creations of a run.

    Every mutation is appended to the journal before it is attempted and
    marked completed only once it is confirmed on disk. Existing files are
    never overwritten.
    """

    def __init__(self, journal: Optional[TransactionJournal] = None, dry_run: bool = False):
        self.journal = journal
        self.dry_run = dry_run

    def move(self, src: Path, dest: Path, content_hash: Optional[str] = None) -> Path:
        if self.dry_run:
            logging.info(f"[DRY RUN] Move {src} -> {dest}")
            return dest

        self.ensure_dir(dest.parent)

        try:
            size = src.stat().st_size
        except OSError as e:
            raise PlacementError(f"Source vanished before move: {src}: {e}") from e

        op = OperationRecord(OperationType.MOVE, src, dest, file_size=size, content_hash=content_hash)
        self._begin(op)
        try:
            if dest.exists():
                raise FileExistsError(f"Destination already exists: {dest}")
            shutil.move(str(src), str(dest))
            if not dest.exists():
                raise FileNotFoundError(f"Move reported success but {dest} is missing")
        except OSError as e:
            self._fail(op, str(e))
            raise PlacementError(f"Failed to move {src} -> {dest}: {e}") from e

        self._complete(op)
        logging.debug(f"Moved {src} -> {dest}")
        return dest

    def ensure_dir(self, folder: Path):
        """Creates folder and any missing parents, journaling each one created."""
        if self.dry_run or folder.is_dir():
            return

        missing: List[Path] = []
        current = folder
        while not current.exists():
            missing.append(current)
            if current.parent == current:
                break
            current = current.parent

        for directory in reversed(missing):
            op = OperationRecord(OperationType.CREATE_FOLDER, directory, directory)
            self._begin(op)
            try:
                os.mkdir(directory)
            except FileExistsError:
                # Another worker got there first; its record owns the undo
                self._fail(op, "already exists")
                continue
            except OSError as e:
                self._fail(op, str(e))
                raise PlacementError(f"Cannot create folder {directory}: {e}") from e
            self._complete(op)
            logging.info(f"Created directory: {directory}")

    # --- Journal hooks ---

    def _begin(self, op: OperationRecord):
        if self.journal is not None and self.journal.has_active_session:
            self.journal.record(op)

    def _complete(self, op: OperationRecord):
        if self.journal is not None:
            self.journal.mark_completed(op)
        else:
            op.completed = True

    def _fail(self, op: OperationRecord, error: str):
        if self.journal is not None:
            self.journal.mark_failed(op, error)
        else:
            op.error_message = error
