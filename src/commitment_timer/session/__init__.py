"""Session subpackage.

Domain objects, the wall-clock catch-up algorithm, and the engine that
owns the session record.

Public surface
--------------
- Phase             — enum: IDLE, ACTIVE, ESCALATING, LOCKED, COMPLETED
- SessionDurations  — active / escalation / lock lengths in seconds
- SessionRecord     — the persisted session snapshot
- PhaseTransition   — one applied phase change
- reconcile_record  — pure catch-up of a record to ``now``
- PhaseProgress     — elapsed / remaining time inside a phase
- SessionEngine     — serialized owner of the record
- RecordSerializer  — JSON/YAML envelope with schema version and checksum
- Clock, SystemClock, FrozenClock
"""
from __future__ import annotations

from commitment_timer.session.clock import Clock, FrozenClock, SystemClock
from commitment_timer.session.state import (
    Phase,
    PhaseTransition,
    SessionDurations,
    SessionRecord,
)
from commitment_timer.session.reconcile import (
    MAX_PHASE_ADVANCES,
    PhaseProgress,
    ReconcileOutcome,
    phase_progress,
    reconcile_record,
)
from commitment_timer.session.serializer import RecordSerializer, SchemaVersionError
from commitment_timer.session.engine import SessionEngine

__all__ = [
    "MAX_PHASE_ADVANCES",
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
    "phase_progress",
    "reconcile_record",
]
