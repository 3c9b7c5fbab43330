"""Abstract base class for checkpoint storage backends.

Backends are plain key/value stores of UTF-8 strings.  The checkpoint
layer decides what goes into the payload (a serialized ``SessionRecord``
envelope); backends never interpret it.

Classes
-------
- StorageBackend  — abstract base for all backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Protocol for reading and writing raw payloads by key.

    Backend implementations must be safe for sequential (single-threaded)
    use.  ``SessionEngine`` serializes its own writes, so a backend only
    needs extra locking when it is shared between engines.
    """

    @abstractmethod
    def save(self, key: str, payload: str) -> None:
        """Persist ``payload`` under ``key``, overwriting any previous value.

        A failed save must leave the previous value readable.

        Parameters
        ----------
        key:
            Storage key.
        payload:
            UTF-8 string to persist.
        """

    @abstractmethod
    def load(self, key: str) -> str:
        """Return the payload stored under ``key``.

        Raises
        ------
        KeyError
            If no entry exists for ``key``.
        """
