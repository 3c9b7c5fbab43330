"""Redis storage backend.

Import-guarded: ``redis`` is an optional dependency.  Instantiating
``RedisBackend`` without the ``redis`` package installed raises
``ImportError`` with an install hint.

Useful when the checkpoint has to live off-device, for example when the
same installation runs on a short-lived container.

Classes
-------
- RedisBackend  — Redis key/value storage
"""
from __future__ import annotations

from commitment_timer.storage.base import StorageBackend

_REDIS_IMPORT_ERROR = (
    "The 'redis' package is required for RedisBackend. "
    "Install it with: pip install redis"
)


class RedisBackend(StorageBackend):
    """Persists payloads as Redis strings under ``<key_prefix><key>``.

    Checkpoints never expire.

    Parameters
    ----------
    host:
        Redis server hostname.
    port:
        Redis server port.
    db:
        Redis logical database index.
    password:
        Optional authentication password.
    key_prefix:
        String prepended to all keys.
    url:
        If supplied, overrides host/port/db/password and is used as a Redis
        connection URL (e.g. ``"redis://localhost:6379/0"``).
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        key_prefix: str = "commitment_timer:",
        url: str | None = None,
    ) -> None:
        try:
            import redis as redis_module  # noqa: PLC0415
        except ImportError as exc:
            raise ImportError(_REDIS_IMPORT_ERROR) from exc

        if url is not None:
            self._client = redis_module.Redis.from_url(url, decode_responses=True)
        else:
            self._client = redis_module.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
            )
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def save(self, key: str, payload: str) -> None:
        self._client.set(self._key(key), payload)

    def load(self, key: str) -> str:
        value = self._client.get(self._key(key))
        if value is None:
            raise KeyError(f"Key {key!r} not found in RedisBackend.")
        return str(value)

    def __repr__(self) -> str:
        return f"RedisBackend(key_prefix={self._key_prefix!r})"
