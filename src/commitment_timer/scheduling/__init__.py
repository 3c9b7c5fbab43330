"""Deadline scheduling subpackage.

Public surface
--------------
- DeadlineScheduler  — abstract external scheduler (arm / cancel / cancel_all)
- InMemoryScheduler  — dict-backed scheduler
- ScheduledAlert     — one armed alert
- SchedulerAdapter   — derives alerts from the session record
"""
from __future__ import annotations

from commitment_timer.scheduling.adapter import (
    ACTIVE_END,
    ALERT_IDS,
    ESCALATION_END,
    LOCK_END,
    SchedulerAdapter,
    alerts_for,
)
from commitment_timer.scheduling.base import (
    DeadlineScheduler,
    InMemoryScheduler,
    ScheduledAlert,
)

__all__ = [
    "ACTIVE_END",
    "ALERT_IDS",
    "ESCALATION_END",
    "LOCK_END",
    "DeadlineScheduler",
    "InMemoryScheduler",
    "ScheduledAlert",
    "SchedulerAdapter",
    "alerts_for",
]
