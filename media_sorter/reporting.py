import csv
import logging
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, List

from .models import Decision, PlacementEvent


class PlacementReport:
    """
    Collects placement events from all workers.
    Pass an instance to PlacementEngine as a listener.
    """

    HEADERS = ["Source Path", "Destination Path", "Decision", "Fingerprint", "Notes"]

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[PlacementEvent] = []
        self._counts: Counter = Counter()
        self.removed_dirs: List[Path] = []

    def __call__(self, event: PlacementEvent):
        with self._lock:
            self.events.append(event)
            self._counts[event.decision] += 1

    def note_removed_dir(self, path: Path):
        with self._lock:
            self.removed_dirs.append(path)

    def count(self, decision: Decision) -> int:
        with self._lock:
            return self._counts[decision]

    @property
    def counts(self) -> Dict[Decision, int]:
        with self._lock:
            return dict(self._counts)

    def summary(self) -> str:
        counts = self.counts
        text = ", ".join(f"{d.value}: {counts.get(d, 0)}" for d in Decision)
        if self.removed_dirs:
            text += f", empty folders removed: {len(self.removed_dirs)}"
        return text

    def write_csv(self, output_csv: Path):
        with self._lock:
            events = list(self.events)

        logging.info(f"Writing placement report ({len(events)} rows) -> {output_csv}")
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for e in events:
                writer.writerow([
                    str(e.source) if e.source else "",
                    str(e.destination) if e.destination else "",
                    e.decision.value,
                    e.key or "",
                    e.note,
                ])
