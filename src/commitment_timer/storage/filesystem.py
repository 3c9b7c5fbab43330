"""Filesystem storage backend.

Persists each key as an individual JSON file under a configurable
directory.  Defaults to ``~/.commitment-timer/``.

Writes go to a temporary sibling file that is fsynced and then renamed
over the target, so a crash mid-write leaves the previous checkpoint
intact.

Classes
-------
- FilesystemBackend  — one file per key
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

from commitment_timer.storage.base import StorageBackend

DEFAULT_STORAGE_DIR: Path = Path.home() / ".commitment-timer"
_FILE_EXTENSION = ".json"


class FilesystemBackend(StorageBackend):
    """Stores payloads as ``<storage_dir>/<key>.json``.

    Parameters
    ----------
    storage_dir:
        Root directory.  Created on first write if absent.
    """

    def __init__(self, storage_dir: str | Path | None = None) -> None:
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else DEFAULT_STORAGE_DIR
        )

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def _path_for(self, key: str) -> Path:
        # Guard against path traversal.
        safe_name = os.path.basename(key)
        return self._storage_dir / f"{safe_name}{_FILE_EXTENSION}"

    def save(self, key: str, payload: str) -> None:
        """Atomically replace ``<storage_dir>/<key>.json`` with ``payload``."""
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._storage_dir, prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, key: str) -> str:
        path = self._path_for(key)
        if not path.exists():
            raise KeyError(f"Key {key!r} not found at {path}")
        return path.read_text(encoding="utf-8")

    def __repr__(self) -> str:
        return f"FilesystemBackend(storage_dir={str(self._storage_dir)!r})"
