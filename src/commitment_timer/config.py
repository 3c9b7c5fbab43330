"""Configuration loading.

Settings live in a YAML file, by default ``~/.commitment-timer/config.yaml``.
The ``COMMITMENT_TIMER_CONFIG`` environment variable points at another
file.  A missing file means all defaults; CLI options override whatever
the file says.

Example file::

    storage: sqlite
    db_path: /var/lib/commitment-timer/checkpoints.db
    tick_interval: 1.0
    stale_after_seconds: 600
    durations:
      active_duration: 1500
      escalation_duration: 120
      lock_duration: 300

Classes
-------
- TimerConfig  — validated settings
"""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

from commitment_timer.session.state import SessionDurations

CONFIG_ENV_VAR = "COMMITMENT_TIMER_CONFIG"
DEFAULT_HOME: Path = Path.home() / ".commitment-timer"
DEFAULT_CONFIG_PATH: Path = DEFAULT_HOME / "config.yaml"

StorageKind = Literal["memory", "filesystem", "sqlite", "redis"]


class TimerConfig(BaseModel):
    """Settings for one installation.

    Parameters
    ----------
    storage:
        Which checkpoint backend to use.
    storage_dir:
        Directory for the filesystem backend and the installation lock.
    db_path:
        SQLite file for the sqlite backend.
    redis_url:
        Connection URL for the redis backend.
    record_key:
        Key the session record is stored under.
    tick_interval:
        Seconds between reconciles in ``watch`` mode.
    stale_after_seconds:
        Remote commands older than this are ignored.  None disables.
    dedupe_window:
        Number of remote command ids remembered for de-duplication.
    durations:
        Durations for a brand-new installation.
    """

    storage: StorageKind = "filesystem"
    storage_dir: Path = DEFAULT_HOME
    db_path: Path | None = None
    redis_url: str = "redis://localhost:6379/0"
    record_key: str = "session"
    tick_interval: float = Field(default=1.0, gt=0)
    stale_after_seconds: float | None = Field(default=None, gt=0)
    dedupe_window: int = Field(default=256, ge=1)
    durations: SessionDurations = Field(default_factory=SessionDurations)

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path or self.storage_dir / "checkpoints.db"

    @property
    def lock_path(self) -> Path:
        return self.storage_dir / "engine.lock"

    @property
    def stale_after(self) -> timedelta | None:
        if self.stale_after_seconds is None:
            return None
        return timedelta(seconds=self.stale_after_seconds)


def default_config_path() -> Path:
    """Return the config path, honouring ``COMMITMENT_TIMER_CONFIG``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_config(path: str | Path | None = None) -> TimerConfig:
    """Load settings from ``path`` (or the default location).

    Raises
    ------
    ValueError
        If the file exists but is not a YAML mapping or fails validation.
    """
    config_path = Path(path).expanduser() if path is not None else default_config_path()
    if not config_path.exists():
        return TimerConfig()

    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if data is None:
        return TimerConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping.")
    return TimerConfig.model_validate(data)
