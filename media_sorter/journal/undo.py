import logging
import shutil
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from ..exceptions import UndoError
from ..models import OperationRecord, OperationType, UndoResult
from .transactions import TransactionJournal


class UndoEngine:
    """
    Replays a persisted session backwards. Each operation succeeds or fails
    on its own; the session file itself is left untouched so a partially
    failed undo can be retried.
    """

    def __init__(self, journal: Optional[TransactionJournal] = None):
        self.journal = journal or TransactionJournal()

    def undo(self, session_id: str, base_dir: Path, show_progress: bool = False) -> UndoResult:
        logging.info(f"Starting undo for session: {session_id}")

        session = self.journal.load_session(session_id, base_dir)
        if session is None:
            return UndoResult(False, 0, 0, f"Session not found: {session_id}")

        success_count = 0
        fail_count = 0
        errors = []

        operations = list(reversed(session.operations))
        for op in tqdm(operations, desc="Undoing", disable=not show_progress):
            if not op.completed:
                logging.debug(f"Skipping incomplete operation: {op.type.value} {op.destination_path}")
                continue
            try:
                self.undo_operation(op)
                success_count += 1
            except (UndoError, OSError) as e:
                fail_count += 1
                msg = f"Failed to undo {op.type.value} {op.source_path} -> {op.destination_path}: {e}"
                logging.error(msg)
                errors.append(msg)

        logging.info(f"Undo completed: {success_count} successful, {fail_count} failed")
        return UndoResult(
            success=fail_count == 0,
            success_count=success_count,
            fail_count=fail_count,
            error_message="\n".join(errors) if errors else None,
        )

    def undo_operation(self, op: OperationRecord):
        if op.type is OperationType.MOVE:
            self._undo_move(op)
        elif op.type is OperationType.COPY:
            self._undo_copy(op)
        elif op.type is OperationType.CREATE_FOLDER:
            self._undo_create_folder(op)
        else:
            logging.warning(f"Cannot undo {op.type.value} of {op.source_path}")
            raise UndoError(f"{op.type.value} is not reversible")

    def _undo_move(self, op: OperationRecord):
        current = op.destination_path
        original = op.source_path

        if not current.exists():
            raise UndoError(f"Cannot undo move - file not found: {current}")
        if original.exists():
            raise UndoError(f"Cannot undo move - original location is occupied: {original}")

        original.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(current), str(original))
        logging.debug(f"Moved back: {current} -> {original}")

    def _undo_copy(self, op: OperationRecord):
        copy = op.destination_path
        if copy.exists():
            copy.unlink()
            logging.debug(f"Deleted copy: {copy}")

    def _undo_create_folder(self, op: OperationRecord):
        folder = op.destination_path
        if not folder.is_dir():
            return
        if any(folder.iterdir()):
            logging.debug(f"Folder not empty, leaving it: {folder}")
            return
        folder.rmdir()
        logging.debug(f"Deleted folder: {folder}")
