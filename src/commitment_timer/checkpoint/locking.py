"""Cross-process installation lock.

The session record has a single logical owner per installation.  Short
lived processes (CLI invocations, a watcher, a command relay) take this
lock around their load / mutate / save cycle so that two of them never
interleave read-modify-write on the same checkpoint.

The lock is a sentinel file created with exclusive-create mode, which is
atomic on POSIX and Windows alike.

Classes
-------
FileLock
    Acquires an exclusive lock on a sentinel ``.lock`` file.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS: float = 0.05


class FileLock:
    """Advisory lock using exclusive file creation.

    Parameters
    ----------
    lock_path:
        Path to the sentinel lock file.  Created on acquisition and
        deleted on release.  Its parent directory is created if missing.
    timeout:
        Maximum number of seconds to wait before raising
        :class:`TimeoutError`.

    Raises
    ------
    TimeoutError
        If the lock cannot be acquired within *timeout* seconds.
    """

    def __init__(self, lock_path: str | Path, timeout: float = 10.0) -> None:
        self._lock_path: Path = Path(lock_path)
        self._timeout: float = timeout
        self._lock_file: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._lock_file is not None

    def acquire(self) -> None:
        """Block until the sentinel file is created or the timeout expires."""
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        start = time.monotonic()
        while True:
            try:
                self._lock_file = open(self._lock_path, "x")  # noqa: SIM115
                logger.debug("FileLock: acquired %s", self._lock_path)
                return
            except FileExistsError:
                if time.monotonic() - start >= self._timeout:
                    raise TimeoutError(
                        f"Could not acquire lock {self._lock_path} within {self._timeout}s"
                    ) from None
                time.sleep(_POLL_INTERVAL_SECONDS)

    def release(self) -> None:
        """Release the lock.  Safe to call when not held."""
        if self._lock_file is None:
            return
        self._lock_file.close()
        self._lock_file = None
        self._lock_path.unlink(missing_ok=True)
        logger.debug("FileLock: released %s", self._lock_path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.release()
