"""
File Tracker Package

Polls a root folder at a fixed interval and reports which files were
added, modified or removed since the previous scan.

Features:
- Metadata snapshots (modification time, size) of regular files
- Deterministic, path-ordered diffs
- Single cancellable poll loop per tracker, start replaces
- Bounded history of change batches
- Ordered event channel with non-blocking publish
- Versioned persisted state for restart recovery
"""

from .models import (
    ChangeKind,
    EventType,
    FileMeta,
    Snapshot,
    ChangeRecord,
    ChangeBatch,
    TrackerEvent,
    PersistedState,
)

from .config import TrackerConfig

from .exceptions import (
    TrackerError,
    PathError,
    RootNotFoundError,
    RootNotADirectoryError,
    ScanError,
    PersistenceError,
)

from .snapshot import SnapshotBuilder, validate_root
from .diff import diff_snapshots, summarize
from .history import HistoryBuffer
from .events import EventBus, Subscription
from .state_store import StateStore
from .poll_loop import PollLoop, LoopState
from .tracker import FileTracker, SessionInfo, TrackerState


__all__ = [
    # Models
    "ChangeKind",
    "EventType",
    "FileMeta",
    "Snapshot",
    "ChangeRecord",
    "ChangeBatch",
    "TrackerEvent",
    "PersistedState",
    # Config
    "TrackerConfig",
    # Exceptions
    "TrackerError",
    "PathError",
    "RootNotFoundError",
    "RootNotADirectoryError",
    "ScanError",
    "PersistenceError",
    # Components
    "SnapshotBuilder",
    "validate_root",
    "diff_snapshots",
    "summarize",
    "HistoryBuffer",
    "EventBus",
    "Subscription",
    "StateStore",
    "PollLoop",
    "LoopState",
    # Command surface
    "FileTracker",
    "SessionInfo",
    "TrackerState",
]

__version__ = "0.1.0"
