"""SQLite-backed persistence of the tracker configuration."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .exceptions import PersistenceError
from .models import PersistedState

logger = logging.getLogger(__name__)

STATE_KEY = "tracker"


class StateStore:
    """
    Stores a single versioned PersistedState record.

    The record lives in a key-value table so that later additions can
    share the same database file.
    """

    def __init__(self, db_path: Path, table_name: str = "tracker_state"):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            table_name: Name of the key-value table
        """
        self.db_path = Path(db_path)
        self.table_name = table_name

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        return conn

    def save(self, state: PersistedState) -> None:
        """
        Write the state record, replacing any previous one.

        Raises:
            PersistenceError: If the database cannot be written
        """
        payload = json.dumps(state.to_dict())
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                conn.execute(
                    f"INSERT OR REPLACE INTO {self.table_name} (key, value, updated_at) "
                    "VALUES (?, ?, CURRENT_TIMESTAMP)",
                    (STATE_KEY, payload),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Failed to save tracker state to {self.db_path}: {e}") from e

        logger.info(f"Saved state to {self.db_path} (root={state.root_target}, active={state.active})")

    def load(self) -> Optional[PersistedState]:
        """
        Read the state record.

        A missing, unreadable or malformed record is reported as absent.

        Returns:
            The persisted state, or None
        """
        if not self.db_path.exists():
            return None

        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    f"SELECT value FROM {self.table_name} WHERE key = ?",
                    (STATE_KEY,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Ignoring unreadable state database {self.db_path}: {e}")
            return None

        if row is None or row[0] is None:
            return None

        try:
            data = json.loads(row[0])
        except ValueError as e:
            logger.warning(f"Ignoring malformed state record in {self.db_path}: {e}")
            return None

        state = PersistedState.from_dict(data)
        if state is None:
            logger.warning(f"Ignoring invalid state record in {self.db_path}")
        return state

    def clear(self) -> None:
        """
        Delete the state record.

        Raises:
            PersistenceError: If the database cannot be written
        """
        if not self.db_path.exists():
            return

        try:
            conn = self._connect()
            try:
                conn.execute(f"DELETE FROM {self.table_name} WHERE key = ?", (STATE_KEY,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear tracker state in {self.db_path}: {e}") from e
