"""
Durable log of every filesystem mutation of a run, grouped into sessions.

One JSON file per session under <base>/transactions/<session_id>.json. The
file is rewritten whole (temp file + os.replace) every JOURNAL_AUTOSAVE_COUNT
operations and at end_session(), so a crash leaves at worst the previous
complete snapshot on disk.
"""
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .. import config
from ..models import OperationRecord, TransactionSession

SESSION_ID_FORMAT = "%Y-%m-%d_%H%M%S"


class TransactionJournal:
    def __init__(self, autosave_count: int = config.JOURNAL_AUTOSAVE_COUNT):
        self.autosave_count = max(1, autosave_count)
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._session: Optional[TransactionSession] = None
        self._log_path: Optional[Path] = None
        self._since_save = 0

    @staticmethod
    def transactions_dir(base_dir: Path) -> Path:
        return Path(base_dir) / config.TRANSACTIONS_DIRNAME

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    @property
    def has_active_session(self) -> bool:
        return self._session is not None

    def start_session(self, base_dir: Path) -> str:
        tx_dir = self.transactions_dir(base_dir)
        tx_dir.mkdir(parents=True, exist_ok=True)

        now = datetime.now()
        session_id = now.strftime(SESSION_ID_FORMAT)
        suffix = 1
        while (tx_dir / f"{session_id}.json").exists():
            session_id = f"{now.strftime(SESSION_ID_FORMAT)}-{suffix}"
            suffix += 1

        with self._lock:
            self._session = TransactionSession(session_id=session_id, base_dir=Path(base_dir), started_at=now)
            self._log_path = tx_dir / f"{session_id}.json"
            self._since_save = 0

        # Write an empty session right away so the run is enumerable even if it dies early
        self.save()
        logging.info(f"Transaction log started: {self._log_path}")
        return session_id

    def record(self, op: OperationRecord):
        """Appends an operation; persists the session every autosave_count appends."""
        with self._lock:
            if self._session is None:
                raise RuntimeError("No active transaction session")
            self._session.operations.append(op)
            self._since_save += 1
            due = self._since_save >= self.autosave_count
            if due:
                self._since_save = 0
        if due:
            self.save()

    def mark_completed(self, op: OperationRecord):
        with self._lock:
            op.completed = True

    def mark_failed(self, op: OperationRecord, error: str):
        with self._lock:
            op.completed = False
            op.error_message = error

    def operations(self) -> List[OperationRecord]:
        with self._lock:
            return list(self._session.operations) if self._session else []

    def save(self) -> bool:
        """Snapshots the session under the append lock, then rewrites the file."""
        with self._write_lock:
            with self._lock:
                if self._session is None or self._log_path is None:
                    return False
                payload = self._serialize(self._session)
                path = self._log_path
            try:
                self._atomic_write(path, payload)
            except OSError as e:
                logging.error(f"Failed to save transaction log {path}: {e}")
                return False
            logging.debug(f"Transaction log saved: {payload['total_operations']} operations")
            return True

    def end_session(self) -> Optional[str]:
        if self._session is None:
            return None
        self.save()
        with self._lock:
            session_id = self._session.session_id
            count = len(self._session.operations)
            self._session = None
            self._log_path = None
        logging.info(f"Transaction session {session_id} ended: {count} operations logged")
        return session_id

    # --- Reading persisted sessions ---

    def list_sessions(self, base_dir: Path) -> List[str]:
        tx_dir = self.transactions_dir(base_dir)
        if not tx_dir.is_dir():
            return []
        return sorted(p.stem for p in tx_dir.glob("*.json"))

    def load_session(self, session_id: str, base_dir: Path) -> Optional[TransactionSession]:
        path = self.transactions_dir(base_dir) / f"{session_id}.json"
        if not path.exists():
            logging.error(f"Transaction log not found: {path}")
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return TransactionSession(
                session_id=data["session_id"],
                base_dir=Path(data["base_dir"]),
                started_at=datetime.fromisoformat(data["started_at"]),
                operations=[OperationRecord.from_dict(op) for op in data.get("operations", [])],
            )
        except (OSError, ValueError, KeyError) as e:
            logging.error(f"Failed to load transaction log {path}: {e}")
            return None

    # --- Internals ---

    @staticmethod
    def _serialize(session: TransactionSession) -> dict:
        return {
            "session_id": session.session_id,
            "base_dir": str(session.base_dir),
            "started_at": session.started_at.isoformat(),
            "timestamp": datetime.now().isoformat(),
            "total_operations": len(session.operations),
            "operations": [op.to_dict() for op in session.operations],
        }

    @staticmethod
    def _atomic_write(path: Path, payload: dict):
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
