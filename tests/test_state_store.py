"""Tests for state store module."""

import json
import pytest
import sqlite3

from src.tracker.exceptions import PersistenceError
from src.tracker.models import PersistedState
from src.tracker.state_store import STATE_KEY, StateStore


def write_raw(db_path, value):
    store = StateStore(db_path)
    conn = store._connect()
    conn.execute(
        f"INSERT OR REPLACE INTO {store.table_name} (key, value) VALUES (?, ?)",
        (STATE_KEY, value),
    )
    conn.commit()
    conn.close()


class TestStateStore:
    """Tests for StateStore class."""

    def test_load_missing_database(self, tmp_path):
        db_path = tmp_path / "state.db"
        assert StateStore(db_path).load() is None
        assert not db_path.exists()

    def test_save_and_load(self, tmp_path):
        db_path = tmp_path / "state.db"
        store = StateStore(db_path)

        store.save(PersistedState(root_target=tmp_path, active=True))

        loaded = StateStore(db_path).load()
        assert loaded.root_target == tmp_path
        assert loaded.active is True
        assert loaded.version == 1

    def test_save_replaces_previous(self, tmp_path):
        store = StateStore(tmp_path / "state.db")
        store.save(PersistedState(root_target=tmp_path / "a", active=True))
        store.save(PersistedState(root_target=tmp_path / "b", active=False))

        loaded = store.load()
        assert loaded.root_target == tmp_path / "b"
        assert loaded.active is False

    def test_save_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "state.db"
        StateStore(db_path).save(PersistedState(root_target=tmp_path, active=True))
        assert db_path.exists()

    def test_stored_record_is_versioned_json(self, tmp_path):
        db_path = tmp_path / "state.db"
        StateStore(db_path).save(PersistedState(root_target=tmp_path, active=True))

        conn = sqlite3.connect(str(db_path))
        value = conn.execute("SELECT value FROM tracker_state WHERE key = ?", (STATE_KEY,)).fetchone()[0]
        conn.close()

        data = json.loads(value)
        assert data["version"] == 1
        assert data["root_target"] == str(tmp_path)
        assert "last_snapshot" not in data

    def test_malformed_json_is_absent(self, tmp_path):
        db_path = tmp_path / "state.db"
        write_raw(db_path, "{not json")
        assert StateStore(db_path).load() is None

    def test_invalid_record_is_absent(self, tmp_path):
        db_path = tmp_path / "state.db"
        write_raw(db_path, json.dumps({"version": 1, "active": True}))
        assert StateStore(db_path).load() is None

    def test_corrupted_database_is_absent(self, tmp_path):
        db_path = tmp_path / "state.db"
        db_path.write_bytes(b"this is not a sqlite database at all" * 100)
        assert StateStore(db_path).load() is None

    def test_newer_record_with_extra_fields_loads(self, tmp_path):
        db_path = tmp_path / "state.db"
        write_raw(db_path, json.dumps({
            "version": 3,
            "root_target": str(tmp_path),
            "active": True,
            "theme": "dark",
        }))

        loaded = StateStore(db_path).load()
        assert loaded.root_target == tmp_path
        assert loaded.version == 3

    def test_save_failure_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where a directory should be")
        store = StateStore(blocker / "state.db")

        with pytest.raises(PersistenceError):
            store.save(PersistedState(root_target=tmp_path, active=True))

    def test_clear(self, tmp_path):
        store = StateStore(tmp_path / "state.db")
        store.save(PersistedState(root_target=tmp_path, active=True))

        store.clear()

        assert store.load() is None

    def test_clear_missing_database(self, tmp_path):
        StateStore(tmp_path / "state.db").clear()
