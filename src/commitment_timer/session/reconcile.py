"""Wall-clock catch-up for session records.

``reconcile_record`` advances a stale record to the phase it would be in
had it been ticked continuously up to ``now``.  It is a pure function of
``(record, now)``; durations are read from the record at evaluation time.

Per-phase rules
---------------
- Active:     ``now - anchor >= active``             → Escalating (same anchor)
- Escalating: ``now - anchor >= active + escalation`` → Locked until
  ``boundary + lock``
- Locked:     ``now >= lock_deadline``                → Escalating with
  ``anchor = loop_back - active``

Boundary instants, not ``now``, seed the next phase, so a single call over
a long gap lands mid-window exactly where continuous ticking would have.
Whole Escalating⇄Locked cycles are skipped arithmetically, which keeps the
step count constant for any gap.  Degenerate durations (a zero-length
cycle) are stopped by ``max_steps``.

Classes
-------
- ReconcileOutcome  — result of one catch-up
- PhaseProgress     — elapsed / remaining time within the current phase
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from commitment_timer.session.state import Phase, PhaseTransition, SessionRecord

logger = logging.getLogger(__name__)

MAX_PHASE_ADVANCES: int = 16

_ZERO = timedelta(0)


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result of ``reconcile_record``.

    Parameters
    ----------
    record:
        The caught-up record (the input record if nothing changed).
    transitions:
        Transitions applied, in order.
    cycles_skipped:
        Whole Escalating⇄Locked cycles jumped over without a step each.
    truncated:
        True if the step cap was hit while a transition was still due.
    """

    record: SessionRecord
    transitions: list[PhaseTransition] = field(default_factory=list)
    cycles_skipped: int = 0
    truncated: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.transitions)


def _advance_once(
    record: SessionRecord, now: datetime
) -> tuple[SessionRecord, PhaseTransition, int] | None:
    """Apply the next due transition, or return None if none is due."""
    durations = record.durations

    if record.phase is Phase.ACTIVE and record.anchor is not None:
        boundary = record.anchor + durations.active
        if now >= boundary:
            return (
                record.evolve(phase=Phase.ESCALATING),
                PhaseTransition(Phase.ACTIVE, Phase.ESCALATING, boundary),
                0,
            )

    elif record.phase is Phase.ESCALATING and record.anchor is not None:
        boundary = record.anchor + durations.active + durations.escalation
        if now >= boundary:
            return (
                record.evolve(
                    phase=Phase.LOCKED,
                    anchor=None,
                    lock_deadline=boundary + durations.lock,
                ),
                PhaseTransition(Phase.ESCALATING, Phase.LOCKED, boundary),
                0,
            )

    elif record.phase is Phase.LOCKED and record.lock_deadline is not None:
        loop_back = record.lock_deadline
        if now >= loop_back:
            skipped = 0
            cycle = durations.cycle
            if cycle > _ZERO:
                skipped = (now - loop_back) // cycle
                loop_back = loop_back + cycle * skipped
            return (
                record.evolve(
                    phase=Phase.ESCALATING,
                    anchor=loop_back - durations.active,
                    lock_deadline=None,
                ),
                PhaseTransition(Phase.LOCKED, Phase.ESCALATING, loop_back),
                skipped,
            )

    return None


def reconcile_record(
    record: SessionRecord,
    now: datetime,
    *,
    max_steps: int = MAX_PHASE_ADVANCES,
) -> ReconcileOutcome:
    """Advance ``record`` through every boundary that lies at or before ``now``.

    Idempotent: calling it again with the same ``now`` on the returned
    record changes nothing.

    Parameters
    ----------
    record:
        The record to catch up.
    now:
        Current wall-clock time (timezone-aware).
    max_steps:
        Upper bound on applied transitions.

    Returns
    -------
    ReconcileOutcome
        The caught-up record plus what was applied.
    """
    current = record
    transitions: list[PhaseTransition] = []
    cycles_skipped = 0

    for _ in range(max_steps):
        step = _advance_once(current, now)
        if step is None:
            return ReconcileOutcome(current, transitions, cycles_skipped, truncated=False)
        current, transition, skipped = step
        transitions.append(transition)
        cycles_skipped += skipped

    truncated = _advance_once(current, now) is not None
    if truncated:
        logger.warning(
            "reconcile_record: stopped after %d steps in phase %s; durations %s are degenerate",
            max_steps,
            current.phase.value,
            current.durations.model_dump(),
        )
    return ReconcileOutcome(current, transitions, cycles_skipped, truncated=truncated)


# ---------------------------------------------------------------------------
# Progress within a phase
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PhaseProgress:
    """Where the session stands inside its current phase.

    All values are seconds.  ``remaining`` is clamped at zero; a negative
    value would only mean the record is stale and needs reconciling.
    """

    phase: Phase
    elapsed: float
    total: float
    remaining: float
    ends_at: datetime | None

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return min(max(self.elapsed / self.total, 0.0), 1.0)


def phase_progress(record: SessionRecord, now: datetime) -> PhaseProgress:
    """Compute elapsed / total / remaining seconds for ``record`` at ``now``."""
    durations = record.durations
    ends_at = record.next_boundary()

    if record.phase is Phase.ACTIVE and record.anchor is not None:
        elapsed = (now - record.anchor).total_seconds()
        total = durations.active_duration
    elif record.phase is Phase.ESCALATING and record.anchor is not None:
        elapsed = (now - record.anchor).total_seconds() - durations.active_duration
        total = durations.escalation_duration
    elif record.phase is Phase.LOCKED and record.lock_deadline is not None:
        total = durations.lock_duration
        elapsed = total - (record.lock_deadline - now).total_seconds()
    else:
        return PhaseProgress(record.phase, 0.0, 0.0, 0.0, None)

    return PhaseProgress(
        phase=record.phase,
        elapsed=elapsed,
        total=total,
        remaining=max(total - elapsed, 0.0),
        ends_at=ends_at,
    )
