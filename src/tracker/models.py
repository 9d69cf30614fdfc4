"""Data models for the file tracker package."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

STATE_SCHEMA_VERSION = 1


class ChangeKind(Enum):
    """How a file differs between two snapshots."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class EventType(Enum):
    """Types of events published by the tracker."""
    STARTED = "started"
    STOPPED = "stopped"
    CHANGES = "changes"
    ERROR = "error"


@dataclass(frozen=True)
class FileMeta:
    """
    Metadata recorded for a single regular file.

    Attributes:
        modified_time: Last modification time as a Unix timestamp
        size: File size in bytes
    """
    modified_time: float
    size: int

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"modified_time": self.modified_time, "size": self.size}


# Root-relative POSIX path -> metadata. Only regular files appear.
Snapshot = Dict[str, FileMeta]


_LABELS = {
    ChangeKind.ADDED: "Added",
    ChangeKind.MODIFIED: "Modified",
    ChangeKind.REMOVED: "Removed",
}


@dataclass(frozen=True)
class ChangeRecord:
    """A single path's classified change between two snapshots."""
    path: str
    kind: ChangeKind

    def __str__(self) -> str:
        return f"{_LABELS[self.kind]}: {self.path}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"path": self.path, "kind": self.kind.value}


@dataclass(frozen=True)
class ChangeBatch:
    """
    The ordered change records produced by one non-empty diff cycle.

    Attributes:
        root: The tracked root folder the records are relative to
        records: Change records ordered by path
        timestamp: Unix timestamp when the cycle completed
        batch_id: Unique identifier for this batch
    """
    root: Path
    records: Tuple[ChangeRecord, ...]
    timestamp: float = field(default_factory=time.time)
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def __post_init__(self):
        if not self.root.is_absolute():
            raise ValueError(f"root must be absolute: {self.root}")
        if not isinstance(self.records, tuple):
            object.__setattr__(self, "records", tuple(self.records))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def paths(self, kind: ChangeKind) -> List[str]:
        """Paths of the given kind, in record order."""
        return [r.path for r in self.records if r.kind == kind]

    @property
    def added(self) -> List[str]:
        return self.paths(ChangeKind.ADDED)

    @property
    def modified(self) -> List[str]:
        return self.paths(ChangeKind.MODIFIED)

    @property
    def removed(self) -> List[str]:
        return self.paths(ChangeKind.REMOVED)

    def to_dict(self) -> dict:
        """
        Convert to dictionary for serialization.

        ``folder`` and ``changes`` carry the display form used by host UIs.
        """
        return {
            "batch_id": self.batch_id,
            "root": str(self.root),
            "timestamp": self.timestamp,
            "records": [r.to_dict() for r in self.records],
            "folder": str(self.root),
            "changes": [str(r) for r in self.records],
        }


@dataclass(frozen=True)
class TrackerEvent:
    """
    Event published to subscribers of the tracker.

    Attributes:
        event_type: started, stopped, changes or error
        root: The root folder concerned, when known
        batch: The change batch for CHANGES events
        message: Human readable description for ERROR events
        timestamp: Unix timestamp when the event was published
    """
    event_type: EventType
    root: Optional[Path] = None
    batch: Optional[ChangeBatch] = None
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "root": str(self.root) if self.root else None,
            "batch": self.batch.to_dict() if self.batch else None,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PersistedState:
    """
    Durable mirror of the tracker configuration.

    Only the root and the active flag are stored, never the snapshot.

    Attributes:
        root_target: The last configured root folder
        active: Whether monitoring was active when the record was written
        updated_at: Unix timestamp of the write
        version: Schema version of the record
    """
    root_target: Path
    active: bool
    updated_at: float = field(default_factory=time.time)
    version: int = STATE_SCHEMA_VERSION

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "version": self.version,
            "root_target": str(self.root_target),
            "active": self.active,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data) -> Optional["PersistedState"]:
        """
        Create from dictionary.

        Unknown keys are ignored so newer records stay readable. Returns
        None for anything that does not carry a usable root_target.
        """
        if not isinstance(data, dict):
            return None

        version = data.get("version", STATE_SCHEMA_VERSION)
        root_target = data.get("root_target")
        active = data.get("active", False)
        updated_at = data.get("updated_at", 0.0)

        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            return None
        if not isinstance(root_target, str) or not root_target:
            return None
        if not isinstance(active, bool):
            return None
        if not isinstance(updated_at, (int, float)) or isinstance(updated_at, bool):
            updated_at = 0.0

        return cls(
            root_target=Path(root_target),
            active=active,
            updated_at=float(updated_at),
            version=version,
        )
