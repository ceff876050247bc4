import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"


class Decision(str, Enum):
    NEW_ORIGINAL = "NEW_ORIGINAL"
    REPLACED_ORIGINAL = "REPLACED_ORIGINAL"
    FILED_AS_DUPLICATE = "FILED_AS_DUPLICATE"
    FILED_AS_OTHER = "FILED_AS_OTHER"
    UNRESOLVED = "UNRESOLVED"


class DuplicateStrategy(str, Enum):
    KEEP_BEST = "keep-best"
    KEEP_LARGEST = "keep-largest"
    KEEP_OLDEST = "keep-oldest"
    KEEP_NEWEST = "keep-newest"
    KEEP_BOTH = "keep-both"


class OperationType(str, Enum):
    MOVE = "MOVE"
    COPY = "COPY"
    DELETE = "DELETE"
    CREATE_FOLDER = "CREATE_FOLDER"


@dataclass
class MediaMetadata:
    """
    What the metadata resolver could learn about a file.
    Every field may be absent; an all-None instance means "no data".
    """
    gps_datetime: Optional[datetime] = None
    capture_datetime: Optional[datetime] = None     # primary EXIF/container timestamp
    secondary_datetime: Optional[datetime] = None   # digitized / encoded / tagged
    device_make: Optional[str] = None
    device_model: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    is_other: bool = False

    @property
    def pixel_area(self) -> Optional[int]:
        if self.width and self.height:
            return self.width * self.height
        return None


@dataclass
class FileRecord:
    """
    One media file under consideration.
    `path` is the only field rewritten after construction, and only by the
    component that physically moves the file.
    """
    path: Path
    kind: MediaKind
    size_bytes: int
    mtime: float
    ctime: float

    metadata: MediaMetadata = field(default_factory=MediaMetadata)

    exact_hash: Optional[str] = None
    phash: Optional[str] = None

    # Fingerprint key this record is stored under in the Reference Index
    index_key: Optional[str] = None

    # Name as scanned; placement may strip copy markers or add a counter
    source_name: Optional[str] = None

    def __post_init__(self):
        if self.source_name is None:
            self.source_name = self.path.name

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def ext(self) -> str:
        return self.path.suffix.lower()

    @property
    def is_media(self) -> bool:
        return self.kind is not MediaKind.OTHER


@dataclass
class ComparisonResult:
    original: FileRecord
    duplicate: FileRecord
    original_metadata: MediaMetadata
    duplicate_metadata: MediaMetadata
    first_is_original: bool
    reason: str


@dataclass
class PlacementEvent:
    """Emitted once per placed file for reporting layers."""
    source: Path
    destination: Optional[Path]
    decision: Decision
    key: Optional[str] = None
    note: str = ""


@dataclass
class OperationRecord:
    type: OperationType
    source_path: Path
    destination_path: Path
    completed: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    operation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    file_size: Optional[int] = None
    content_hash: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "source_path": str(self.source_path),
            "destination_path": str(self.destination_path),
            "completed": self.completed,
            "file_size": self.file_size,
            "content_hash": self.content_hash,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OperationRecord":
        return cls(
            type=OperationType(data["type"]),
            source_path=Path(data["source_path"]),
            destination_path=Path(data["destination_path"]),
            completed=bool(data.get("completed", False)),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            operation_id=data["operation_id"],
            file_size=data.get("file_size"),
            content_hash=data.get("content_hash"),
            error_message=data.get("error_message"),
        )


@dataclass
class TransactionSession:
    session_id: str
    base_dir: Path
    started_at: datetime
    operations: List[OperationRecord] = field(default_factory=list)


@dataclass
class UndoResult:
    success: bool
    success_count: int
    fail_count: int
    error_message: Optional[str] = None

    def __str__(self) -> str:
        return (f"UndoResult(success={self.success}, success_count={self.success_count}, "
                f"fail_count={self.fail_count}, error={self.error_message})")


@dataclass
class Checkpoint:
    processed_count: int = 0
    total_count: int = 0
    processed_files: List[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    last_updated: Optional[datetime] = None

    def add_processed_file(self, path: str):
        self.processed_files.append(path)
        self.processed_count += 1

    def is_file_processed(self, path: str) -> bool:
        return path in self.processed_files

    @property
    def progress(self) -> int:
        if self.total_count == 0:
            return 0
        return (self.processed_count * 100) // self.total_count
