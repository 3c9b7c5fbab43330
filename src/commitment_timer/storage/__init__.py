"""Storage backend subpackage.

All backends implement the ``StorageBackend`` ABC: a key/value store of
UTF-8 strings.  ``RedisBackend`` guards its third-party import so the
package stays installable without the ``redis`` extra.

Public surface
--------------
- StorageBackend    — abstract base class
- InMemoryBackend   — in-process dict (tests, ``--storage memory``)
- FilesystemBackend — one JSON file per key, atomic replace
- SQLiteBackend     — local SQLite database
- RedisBackend      — Redis (requires ``redis``)
"""
from __future__ import annotations

from commitment_timer.storage.base import StorageBackend
from commitment_timer.storage.filesystem import FilesystemBackend
from commitment_timer.storage.memory import InMemoryBackend
from commitment_timer.storage.redis import RedisBackend
from commitment_timer.storage.sqlite import SQLiteBackend

__all__ = [
    "FilesystemBackend",
    "InMemoryBackend",
    "RedisBackend",
    "SQLiteBackend",
    "StorageBackend",
]
