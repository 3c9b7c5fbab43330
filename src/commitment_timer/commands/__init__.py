"""Remote command subpackage.

Public surface
--------------
- CommandKind        — START_SESSION / TRIGGER_LOCK
- RemoteCommand      — inbound command from another principal
- DispatchStatus     — applied / duplicate / stale / rejected
- DispatchResult     — outcome of one dispatch
- CommandDispatcher  — de-duplicating adapter onto SessionEngine
- CommandHistory     — durable list of handled command ids
- SessionTicker      — fixed-interval drain + reconcile loop
"""
from __future__ import annotations

from commitment_timer.commands.models import (
    CommandKind,
    DispatchResult,
    DispatchStatus,
    RemoteCommand,
)
from commitment_timer.commands.dispatcher import CommandDispatcher
from commitment_timer.commands.history import CommandHistory
from commitment_timer.commands.ticker import SessionTicker

__all__ = [
    "CommandDispatcher",
    "CommandHistory",
    "CommandKind",
    "DispatchResult",
    "DispatchStatus",
    "RemoteCommand",
    "SessionTicker",
]
