"""Checkpoint store for the session record.

``CheckpointStore`` is the durable get/set contract the engine depends
on: it serializes one ``SessionRecord`` under a fixed key of a
``StorageBackend``.

Loading never fails.  A missing checkpoint yields a fresh Idle record and
an unreadable one (bad JSON, unknown schema, checksum mismatch, broken
invariants) is logged and replaced by a fresh Idle record.

Saving wraps every backend failure in ``PersistenceFailedError``.

Classes
-------
- CheckpointStore  — load/save the session record
"""
from __future__ import annotations

import logging

from commitment_timer.errors import PersistenceFailedError
from commitment_timer.session.serializer import RecordSerializer
from commitment_timer.session.state import SessionDurations, SessionRecord
from commitment_timer.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_RECORD_KEY = "session"


class CheckpointStore:
    """Persist and restore the installation's ``SessionRecord``.

    Parameters
    ----------
    backend:
        Where the serialized record lives.
    key:
        Storage key for the record.
    serializer:
        Optional custom serializer.  Defaults to a ``RecordSerializer``
        with checksum validation enabled.
    default_durations:
        Durations given to the fresh Idle record when no usable
        checkpoint exists.
    """

    def __init__(
        self,
        backend: StorageBackend,
        key: str = DEFAULT_RECORD_KEY,
        serializer: RecordSerializer | None = None,
        default_durations: SessionDurations | None = None,
    ) -> None:
        self._backend = backend
        self._key = key
        self._serializer = serializer or RecordSerializer()
        self._default_durations = default_durations or SessionDurations()

    @property
    def key(self) -> str:
        return self._key

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def default_record(self) -> SessionRecord:
        """Return the record a new installation starts with."""
        return SessionRecord(durations=self._default_durations)

    def load(self) -> SessionRecord:
        """Return the stored record, or the default Idle record.

        Returns
        -------
        SessionRecord
            Never raises for missing or corrupted data.
        """
        try:
            raw = self._backend.load(self._key)
        except KeyError:
            logger.debug("CheckpointStore: no checkpoint under %r, starting idle", self._key)
            return self.default_record()

        try:
            record = self._serializer.from_json(raw)
        except ValueError as exc:
            # JSONDecodeError, SchemaVersionError and pydantic's
            # ValidationError are all ValueError subclasses.
            logger.warning(
                "CheckpointStore: discarding corrupted checkpoint %r: %s", self._key, exc
            )
            return self.default_record()

        logger.debug("CheckpointStore: loaded %s record from %r", record.phase.value, self._key)
        return record

    def save(self, record: SessionRecord) -> None:
        """Write ``record`` to the backend.

        Raises
        ------
        PersistenceFailedError
            If the backend raised for any reason.  The original exception
            is chained as ``__cause__``.
        """
        payload = self._serializer.to_json(record)
        try:
            self._backend.save(self._key, payload)
        except Exception as exc:
            logger.warning("CheckpointStore: write to %r failed: %s", self._key, exc)
            raise PersistenceFailedError(self._key, str(exc)) from exc
        logger.debug("CheckpointStore: saved %s record to %r", record.phase.value, self._key)

    def __repr__(self) -> str:
        return f"CheckpointStore(backend={self._backend!r}, key={self._key!r})"
