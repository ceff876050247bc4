import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .. import config
from ..models import Checkpoint


class CheckpointStore:
    """Resume support: remembers which source files a run already handled."""

    def __init__(self, base_dir: Path, filename: str = config.CHECKPOINT_FILENAME):
        self.path = Path(base_dir) / filename

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, checkpoint: Checkpoint):
        checkpoint.last_updated = datetime.now()
        data = {
            "processed_count": checkpoint.processed_count,
            "total_count": checkpoint.total_count,
            "processed_files": checkpoint.processed_files,
            "start_time": checkpoint.start_time.isoformat(),
            "last_updated": checkpoint.last_updated.isoformat(),
        }
        tmp = self.path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp.replace(self.path)
            logging.debug(f"Checkpoint saved: {checkpoint.processed_count} / {checkpoint.total_count} files processed")
        except OSError as e:
            logging.error(f"Failed to save checkpoint {self.path}: {e}")

    def load(self) -> Optional[Checkpoint]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            checkpoint = Checkpoint(
                processed_count=data.get("processed_count", 0),
                total_count=data.get("total_count", 0),
                processed_files=list(data.get("processed_files", [])),
                start_time=datetime.fromisoformat(data["start_time"]),
                last_updated=datetime.fromisoformat(data["last_updated"]) if data.get("last_updated") else None,
            )
        except (OSError, ValueError, KeyError) as e:
            logging.error(f"Failed to load checkpoint {self.path}: {e}")
            return None
        logging.info(f"Checkpoint loaded: {checkpoint.processed_count} files already processed")
        return checkpoint

    def delete(self):
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logging.error(f"Failed to delete checkpoint {self.path}: {e}")
