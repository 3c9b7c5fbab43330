"""Unit tests for commitment_timer.storage.sqlite.SQLiteBackend."""
from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from commitment_timer.storage.sqlite import DEFAULT_DB_PATH, SQLiteBackend


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "checkpoints.db"


@pytest.fixture()
def backend(db_path: Path) -> SQLiteBackend:
    return SQLiteBackend(db_path)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestSQLiteBackendConstruction:
    def test_default_path(self) -> None:
        assert SQLiteBackend().db_path == DEFAULT_DB_PATH

    def test_creates_parent_dir_and_table_on_first_use(
        self, backend: SQLiteBackend, db_path: Path
    ) -> None:
        with pytest.raises(KeyError):
            backend.load("session")
        assert db_path.exists()
        conn = sqlite3.connect(str(db_path))
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master")}
        finally:
            conn.close()
        assert "checkpoints" in tables


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestSQLiteBackendCrud:
    def test_roundtrip(self, backend: SQLiteBackend) -> None:
        backend.save("session", '{"phase": "locked"}')
        assert backend.load("session") == '{"phase": "locked"}'

    def test_upsert_overwrites(self, backend: SQLiteBackend) -> None:
        backend.save("session", "old")
        backend.save("session", "new")
        assert backend.load("session") == "new"
        conn = sqlite3.connect(str(backend.db_path))
        try:
            (count,) = conn.execute("SELECT COUNT(*) FROM checkpoints").fetchone()
        finally:
            conn.close()
        assert count == 1

    def test_load_missing_raises_key_error(self, backend: SQLiteBackend) -> None:
        with pytest.raises(KeyError):
            backend.load("missing")

    def test_data_survives_new_instance(self, backend: SQLiteBackend, db_path: Path) -> None:
        backend.save("session", "durable")
        assert SQLiteBackend(db_path).load("session") == "durable"

    def test_repr(self, backend: SQLiteBackend) -> None:
        assert "checkpoints.db" in repr(backend)
