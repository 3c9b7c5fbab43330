"""SQLite storage backend.

Stores checkpoints in a single SQLite database file using the standard
library ``sqlite3`` module.  Each save is one upsert inside its own
transaction.

Classes
-------
- SQLiteBackend  — SQLite-backed key/value storage
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from commitment_timer.storage.base import StorageBackend

DEFAULT_DB_PATH: Path = Path.home() / ".commitment-timer" / "checkpoints.db"
_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS checkpoints (
    key      TEXT PRIMARY KEY,
    payload  TEXT NOT NULL,
    saved_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""
_UPSERT_SQL = """
INSERT INTO checkpoints (key, payload, saved_at)
VALUES (?, ?, datetime('now'))
ON CONFLICT(key) DO UPDATE SET
    payload  = excluded.payload,
    saved_at = excluded.saved_at
"""


class SQLiteBackend(StorageBackend):
    """Persists payloads in a local SQLite database.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  The parent directory and table are
        created on first use.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path: Path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(_CREATE_TABLE_SQL)
        conn.commit()
        return conn

    def _run(self, sql: str, params: tuple[str, ...] = ()) -> sqlite3.Cursor:
        conn = self._get_connection()
        try:
            with conn:
                return conn.execute(sql, params)
        finally:
            conn.close()

    def save(self, key: str, payload: str) -> None:
        self._run(_UPSERT_SQL, (key, payload))

    def load(self, key: str) -> str:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT payload FROM checkpoints WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise KeyError(f"Key {key!r} not found in SQLiteBackend.")
        return str(row["payload"])

    def __repr__(self) -> str:
        return f"SQLiteBackend(db_path={str(self._db_path)!r})"
