"""Directory snapshots built on watchdog's polling snapshot."""

import errno
import logging
import os
import stat
from pathlib import Path, PurePath
from typing import Optional

from watchdog.utils.dirsnapshot import DirectorySnapshot

from .config import TrackerConfig
from .exceptions import RootNotADirectoryError, RootNotFoundError, ScanError
from .models import FileMeta, Snapshot

logger = logging.getLogger(__name__)


def validate_root(root: Path) -> Path:
    """
    Resolve a root folder and check that it can be tracked.

    Args:
        root: Path to the root folder

    Returns:
        The resolved absolute root path

    Raises:
        RootNotFoundError: If the path does not exist
        RootNotADirectoryError: If the path is not a directory
    """
    root = Path(root).expanduser().resolve()

    if not root.exists():
        raise RootNotFoundError(f"Root folder does not exist: {root}", root)
    if not root.is_dir():
        raise RootNotADirectoryError(f"Root is not a directory: {root}", root)

    return root


def _scandir(path):
    """os.scandir that fails the whole scan on unreadable sub-trees."""
    try:
        return list(os.scandir(path))
    except OSError as e:
        # A directory removed mid-walk is treated as empty.
        if e.errno in (errno.ENOENT, errno.ENOTDIR):
            raise
        raise ScanError(f"Cannot read directory {path}: {e.strerror or e}", Path(path)) from e


class SnapshotBuilder:
    """
    Produces Snapshots of a directory tree.

    Only regular files are recorded. Symbolic links are neither followed nor
    recorded and hidden files are included, so successive snapshots of an
    unchanged tree are always equal.
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        """
        Initialize the builder.

        Args:
            config: Tracker configuration (recursion and ignore patterns)
        """
        self.config = config or TrackerConfig()

    def build(self, root: Path) -> Snapshot:
        """
        Walk a directory tree and record metadata for every regular file.

        Args:
            root: Path to the root folder

        Returns:
            Mapping from root-relative POSIX path to FileMeta

        Raises:
            RootNotFoundError: If the root does not exist
            RootNotADirectoryError: If the root is not a directory
            ScanError: If part of the tree cannot be read
        """
        root = validate_root(root)

        try:
            dir_snapshot = DirectorySnapshot(
                str(root),
                recursive=self.config.recursive,
                stat=os.lstat,
                listdir=_scandir,
            )
        except FileNotFoundError as e:
            raise RootNotFoundError(f"Root folder disappeared during scan: {root}", root) from e
        except OSError as e:
            raise ScanError(f"Cannot scan {root}: {e}", root) from e

        snapshot: Snapshot = {}
        for full_path in dir_snapshot.paths:
            st = dir_snapshot.stat_info(full_path)
            if not stat.S_ISREG(st.st_mode):
                continue

            rel_path = PurePath(os.path.relpath(full_path, str(root)))
            if self.config.should_ignore(Path(rel_path)):
                continue

            snapshot[rel_path.as_posix()] = FileMeta(
                modified_time=st.st_mtime,
                size=st.st_size,
            )

        logger.debug(f"Scanned {root}: {len(snapshot)} file(s)")
        return snapshot
