"""Checkpoint subpackage.

Public surface
--------------
- CheckpointStore  — durable load/save of the session record
- FileLock         — single-owner lock shared by processes of one installation
"""
from __future__ import annotations

from commitment_timer.checkpoint.locking import FileLock
from commitment_timer.checkpoint.store import DEFAULT_RECORD_KEY, CheckpointStore

__all__ = ["DEFAULT_RECORD_KEY", "CheckpointStore", "FileLock"]
