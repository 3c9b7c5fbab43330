"""commitment-timer — wall-clock session engine with escalation and remote locks.

A session runs Active, then Escalating, then loops Locked ⇄ Escalating
until it is ended outside a lock.  The engine catches up from any gap in
execution, resumes from a durable checkpoint, accepts remote commands
from trusted principals, and keeps an external scheduler armed for the
next phase boundary.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> from commitment_timer import CheckpointStore, InMemoryBackend, SessionEngine
>>> engine = SessionEngine.open(CheckpointStore(InMemoryBackend()))
>>> engine.phase.value
'idle'
"""
from __future__ import annotations

# Errors
from commitment_timer.errors import (
    InvalidDurationsError,
    InvalidTransitionError,
    PersistenceFailedError,
    TimerError,
)

# Session core
from commitment_timer.session.clock import Clock, FrozenClock, SystemClock
from commitment_timer.session.state import (
    Phase,
    PhaseTransition,
    SessionDurations,
    SessionRecord,
)
from commitment_timer.session.reconcile import (
    PhaseProgress,
    ReconcileOutcome,
    reconcile_record,
)
from commitment_timer.session.serializer import RecordSerializer, SchemaVersionError
from commitment_timer.session.engine import SessionEngine

# Storage and checkpoints
from commitment_timer.storage.base import StorageBackend
from commitment_timer.storage.memory import InMemoryBackend
from commitment_timer.storage.filesystem import FilesystemBackend
from commitment_timer.storage.sqlite import SQLiteBackend
from commitment_timer.checkpoint.store import CheckpointStore
from commitment_timer.checkpoint.locking import FileLock

# Scheduling
from commitment_timer.scheduling.base import (
    DeadlineScheduler,
    InMemoryScheduler,
    ScheduledAlert,
)
from commitment_timer.scheduling.adapter import SchedulerAdapter

# Remote commands
from commitment_timer.commands.models import (
    CommandKind,
    DispatchResult,
    DispatchStatus,
    RemoteCommand,
)
from commitment_timer.commands.dispatcher import CommandDispatcher
from commitment_timer.commands.history import CommandHistory
from commitment_timer.commands.ticker import SessionTicker

# Configuration
from commitment_timer.config import TimerConfig, load_config

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "InvalidDurationsError",
    "InvalidTransitionError",
    "PersistenceFailedError",
    "TimerError",
    # Session core
    "Clock",
    "FrozenClock",
    "Phase",
    "PhaseProgress",
    "PhaseTransition",
    "ReconcileOutcome",
    "RecordSerializer",
    "SchemaVersionError",
    "SessionDurations",
    "SessionEngine",
    "SessionRecord",
    "SystemClock",
    "reconcile_record",
    # Storage and checkpoints
    "CheckpointStore",
    "FileLock",
    "FilesystemBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "StorageBackend",
    # Scheduling
    "DeadlineScheduler",
    "InMemoryScheduler",
    "ScheduledAlert",
    "SchedulerAdapter",
    # Remote commands
    "CommandDispatcher",
    "CommandHistory",
    "CommandKind",
    "DispatchResult",
    "DispatchStatus",
    "RemoteCommand",
    "SessionTicker",
    # Configuration
    "TimerConfig",
    "load_config",
]
