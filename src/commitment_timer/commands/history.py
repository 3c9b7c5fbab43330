"""Durable record of handled remote command ids.

The command bus delivers at least once, and a redelivery can reach a
different process than the first delivery (each CLI invocation is its
own process).  ``CommandHistory`` keeps the ids the dispatcher has
handled in the same ``StorageBackend`` as the checkpoint, under
``<record key>.commands``, so de-duplication survives restarts.

Document format::

    {"command_ids": ["<oldest>", ..., "<newest>"]}

Classes
-------
- CommandHistory  — load/save the handled command ids
"""
from __future__ import annotations

import json
import logging

from commitment_timer.checkpoint.store import CheckpointStore
from commitment_timer.errors import PersistenceFailedError
from commitment_timer.storage.base import StorageBackend

logger = logging.getLogger(__name__)

HISTORY_KEY_SUFFIX = ".commands"


class CommandHistory:
    """Persist the ids of recently handled commands.

    Parameters
    ----------
    backend:
        Where the id list lives.
    key:
        Storage key for the id list.
    """

    def __init__(self, backend: StorageBackend, key: str) -> None:
        self._backend = backend
        self._key = key

    @classmethod
    def beside(cls, store: CheckpointStore) -> CommandHistory:
        """Return the history kept next to ``store``'s checkpoint."""
        return cls(store.backend, f"{store.key}{HISTORY_KEY_SUFFIX}")

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[str]:
        """Return the stored ids, oldest first.

        A missing or unreadable document yields an empty list.
        """
        try:
            raw = self._backend.load(self._key)
        except KeyError:
            return []

        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("CommandHistory: discarding unreadable %r: %s", self._key, exc)
            return []
        ids = data.get("command_ids") if isinstance(data, dict) else None
        if not isinstance(ids, list):
            logger.warning("CommandHistory: discarding malformed %r", self._key)
            return []
        return [str(command_id) for command_id in ids]

    def save(self, command_ids: list[str]) -> None:
        """Replace the stored ids.

        Raises
        ------
        PersistenceFailedError
            If the backend raised.  The original exception is chained.
        """
        payload = json.dumps({"command_ids": list(command_ids)})
        try:
            self._backend.save(self._key, payload)
        except Exception as exc:
            raise PersistenceFailedError(self._key, str(exc)) from exc

    def __repr__(self) -> str:
        return f"CommandHistory(backend={self._backend!r}, key={self._key!r})"
