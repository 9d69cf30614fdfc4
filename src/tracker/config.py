"""Configuration for the file tracker package."""

import fnmatch
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

APP_NAME = "EgadSync"
STATE_DB_NAME = "tracker.db"


def get_app_data_dir() -> Path:
    """Get platform-specific application data directory."""
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / APP_NAME


def default_db_path() -> Path:
    """Well-known location of the persisted tracker state."""
    return get_app_data_dir() / STATE_DB_NAME


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TrackerConfig:
    """
    Configuration options for the file tracker.

    Attributes:
        db_path: Path to the SQLite database holding the persisted state
        poll_interval_seconds: Delay between two scan-and-diff cycles
        history_capacity: Maximum number of change batches kept in memory
        event_queue_size: Per-subscriber queue size before oldest events drop
        recursive: Whether to scan sub-directories
        ignore_patterns: Glob patterns for files to leave out of snapshots
        resume_on_startup: Whether resume() restarts the last active root
    """
    db_path: Path = field(default_factory=default_db_path)
    poll_interval_seconds: float = 60.0
    history_capacity: int = 100
    event_queue_size: int = 256
    recursive: bool = True
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp",
        "*.swp",
        "*.swo",
        "*~",
        ".git/*",
        ".git",
        "__pycache__/*",
        "__pycache__",
        "*.pyc",
        ".DS_Store",
        "Thumbs.db",
    ])
    resume_on_startup: bool = True

    def __post_init__(self):
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if self.poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive: {self.poll_interval_seconds}")
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be at least 1: {self.history_capacity}")

    @classmethod
    def from_env(cls, db_path: Optional[Path] = None) -> "TrackerConfig":
        """
        Build a configuration from EGADSYNC_* environment variables.

        Args:
            db_path: Explicit database path, overrides EGADSYNC_DB_PATH

        Returns:
            Configuration with defaults for unset variables
        """
        kwargs = {}
        env_db = os.environ.get("EGADSYNC_DB_PATH")
        if db_path is not None:
            kwargs["db_path"] = Path(db_path)
        elif env_db:
            kwargs["db_path"] = Path(env_db)

        interval = os.environ.get("EGADSYNC_POLL_INTERVAL")
        if interval:
            kwargs["poll_interval_seconds"] = float(interval)

        capacity = os.environ.get("EGADSYNC_HISTORY_CAPACITY")
        if capacity:
            kwargs["history_capacity"] = int(capacity)

        resume = os.environ.get("EGADSYNC_RESUME_ON_STARTUP")
        if resume:
            kwargs["resume_on_startup"] = _env_bool(resume)

        return cls(**kwargs)

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = path.as_posix()
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, f"*/{pattern}"):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False
