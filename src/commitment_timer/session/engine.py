"""Session lifecycle engine.

``SessionEngine`` owns the installation's ``SessionRecord`` and is the
only place it changes.  Every mutation runs under one re-entrant lock, so
the local tick and remote commands are linearized in arrival order.

Each mutation follows the same path:

1. catch the record up to ``now`` (``reconcile_record``),
2. apply the requested operation to the caught-up record,
3. swap the new record in, write one checkpoint, re-arm the scheduler.

A failed checkpoint write does not undo step 3's in-memory swap; the
engine raises ``PersistenceFailedError`` and remembers that a write is
pending until ``retry_checkpoint`` succeeds.

Classes
-------
- SessionEngine  — start / end / force_lock / reset / reconcile / set_durations
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING

from commitment_timer.errors import (
    InvalidDurationsError,
    InvalidTransitionError,
    PersistenceFailedError,
)
from commitment_timer.session.clock import Clock, SystemClock
from commitment_timer.session.reconcile import (
    MAX_PHASE_ADVANCES,
    PhaseProgress,
    ReconcileOutcome,
    phase_progress,
    reconcile_record,
)
from commitment_timer.session.state import (
    Phase,
    PhaseTransition,
    SessionDurations,
    SessionRecord,
)

if TYPE_CHECKING:
    from commitment_timer.checkpoint.store import CheckpointStore
    from commitment_timer.scheduling.adapter import SchedulerAdapter

logger = logging.getLogger(__name__)


class SessionEngine:
    """The single owner of the session record.

    The record is only exposed read-only (``record``, ``phase``); all
    changes go through the operations below.

    Parameters
    ----------
    store:
        Checkpoint store the record is loaded from and written to.
    scheduler:
        Optional adapter that arms reminders for phase boundaries.
    clock:
        Wall-clock source.  Defaults to ``SystemClock``.
    record:
        Starting record.  When omitted the engine starts from the store's
        default Idle record; call ``resume`` to load the checkpoint.
    max_steps:
        Cap on transitions applied by one catch-up.
    """

    def __init__(
        self,
        store: CheckpointStore,
        scheduler: SchedulerAdapter | None = None,
        clock: Clock | None = None,
        record: SessionRecord | None = None,
        max_steps: int = MAX_PHASE_ADVANCES,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._clock = clock or SystemClock()
        self._record = record if record is not None else store.default_record()
        self._max_steps = max_steps
        self._lock = threading.RLock()
        self._pending_write = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        store: CheckpointStore,
        scheduler: SchedulerAdapter | None = None,
        clock: Clock | None = None,
        max_steps: int = MAX_PHASE_ADVANCES,
    ) -> SessionEngine:
        """Build an engine from the stored checkpoint and catch it up.

        Degenerate durations in the checkpoint are logged, not raised, so
        that opening always yields a usable engine.
        """
        engine = cls(store, scheduler=scheduler, clock=clock, max_steps=max_steps)
        try:
            engine.resume()
        except InvalidDurationsError as exc:
            logger.warning("SessionEngine: resumed with degenerate durations: %s", exc)
        return engine

    def resume(self) -> SessionRecord:
        """Load the checkpoint, cancel armed reminders, and reconcile once.

        Must run before anything reads the phase after a process start, so
        that a long gap never shows a phase that already ended.
        """
        with self._lock:
            self._record = self._store.load()
            self._pending_write = False
            logger.info(
                "SessionEngine: resumed %s record (streak=%d)",
                self._record.phase.value,
                self._record.streak,
            )
            if self._scheduler is not None:
                self._scheduler.foreground()
            return self.reconcile(rearm=True)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def record(self) -> SessionRecord:
        return self._record

    @property
    def phase(self) -> Phase:
        return self._record.phase

    @property
    def durations(self) -> SessionDurations:
        return self._record.durations

    @property
    def pending_write(self) -> bool:
        """True while the in-memory record is newer than the checkpoint."""
        return self._pending_write

    @property
    def store(self) -> CheckpointStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def scheduler(self) -> SchedulerAdapter | None:
        return self._scheduler

    def progress(self, now: datetime | None = None) -> PhaseProgress:
        """Return elapsed / remaining time within the current phase."""
        with self._lock:
            return phase_progress(self._record, now or self._clock.now())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self) -> SessionRecord:
        """Begin a session.  Valid only from Idle or Completed.

        Raises
        ------
        InvalidTransitionError
            If a session is already running.
        """
        with self._lock:
            now = self._clock.now()
            outcome = self._catch_up(now)
            current = outcome.record
            if current.phase.is_running:
                self._commit(outcome, [], now)
                raise InvalidTransitionError("start", current.phase.value)
            started = current.evolve(phase=Phase.ACTIVE, anchor=now, lock_deadline=None)
            transition = PhaseTransition(current.phase, Phase.ACTIVE, now, cause="start")
            self._commit(outcome, [transition], now, started)
            return started

    def end(self) -> SessionRecord:
        """End the session early and credit it.  Valid from Active or Escalating.

        Adds ``active_duration`` to ``total_accrued`` and one to ``streak``.

        Raises
        ------
        InvalidTransitionError
            If the session is Locked (a lock cannot be abandoned), or not
            running at all.
        """
        with self._lock:
            now = self._clock.now()
            outcome = self._catch_up(now)
            current = outcome.record
            if not current.phase.is_anchored:
                self._commit(outcome, [], now)
                raise InvalidTransitionError("end", current.phase.value)
            completed = current.evolve(
                phase=Phase.COMPLETED,
                anchor=None,
                lock_deadline=None,
                streak=current.streak + 1,
                total_accrued=current.total_accrued + current.durations.active_duration,
            )
            transition = PhaseTransition(current.phase, Phase.COMPLETED, now, cause="end")
            self._commit(outcome, [transition], now, completed)
            return completed

    def force_lock(self) -> SessionRecord:
        """Lock immediately for ``lock_duration``, skipping any remaining escalation.

        Valid from Active, Escalating and Locked (where it restarts the lock
        window).

        Raises
        ------
        InvalidTransitionError
            If no session is running.
        """
        with self._lock:
            now = self._clock.now()
            outcome = self._catch_up(now)
            current = outcome.record
            if not current.phase.is_running:
                self._commit(outcome, [], now)
                raise InvalidTransitionError("force_lock", current.phase.value)
            locked = current.evolve(
                phase=Phase.LOCKED,
                anchor=None,
                lock_deadline=now + current.durations.lock,
            )
            transition = PhaseTransition(current.phase, Phase.LOCKED, now, cause="force_lock")
            self._commit(outcome, [transition], now, locked)
            return locked

    def reset(self) -> SessionRecord:
        """Return a Completed session to Idle.

        Raises
        ------
        InvalidTransitionError
            If the session is not Completed.
        """
        with self._lock:
            now = self._clock.now()
            current = self._record
            if current.phase is not Phase.COMPLETED:
                raise InvalidTransitionError("reset", current.phase.value)
            idle = current.evolve(phase=Phase.IDLE)
            transition = PhaseTransition(Phase.COMPLETED, Phase.IDLE, now, cause="reset")
            self._commit(ReconcileOutcome(current), [transition], now, idle)
            return idle

    def reconcile(self, now: datetime | None = None, *, rearm: bool = False) -> SessionRecord:
        """Advance the record to the phase consistent with ``now``.

        Idempotent and convergent: any gap, including many full
        escalate/lock cycles, is covered in a bounded number of steps.
        Nothing is written when no boundary was crossed.

        Parameters
        ----------
        now:
            Evaluation time.  Defaults to the engine's clock.
        rearm:
            Re-arm scheduler alerts even when nothing changed (used after
            the process regains the foreground).

        Raises
        ------
        InvalidDurationsError
            If the catch-up hit its step cap because of degenerate
            durations.  Progress made up to the cap is kept.
        PersistenceFailedError
            If the checkpoint write failed.  The new record is kept.
        """
        with self._lock:
            now = now or self._clock.now()
            outcome = self._catch_up(now)
            if outcome.changed:
                self._commit(outcome, [], now)
            elif rearm and self._scheduler is not None:
                self._scheduler.phase_entered(self._record, now)

            if outcome.truncated:
                raise InvalidDurationsError(
                    self._record.durations.non_positive_fields()
                    or ["escalation_duration", "lock_duration"],
                    "Catch-up stopped at its step limit; durations form a zero-length cycle.",
                )
            return self._record

    def on_foreground(self) -> SessionRecord:
        """Cancel armed reminders and catch up after a suspension."""
        with self._lock:
            if self._scheduler is not None:
                self._scheduler.foreground()
            return self.reconcile(rearm=True)

    def set_durations(self, durations: SessionDurations) -> SessionRecord:
        """Replace the configured durations without running any transition.

        The new values apply from the next catch-up on, including to a
        session already in progress.  Armed reminders are recomputed from
        the new values.

        Raises
        ------
        InvalidDurationsError
            If any duration is zero or negative.  Nothing changes.
        PersistenceFailedError
            If the checkpoint write failed.  The new durations are kept.
        """
        bad = durations.non_positive_fields()
        if bad:
            raise InvalidDurationsError(bad)
        with self._lock:
            updated = self._record.evolve(durations=durations)
            self._record = updated
            logger.info("SessionEngine: durations set to %s", durations.model_dump())
            self._persist_and_rearm(self._clock.now())
            return updated

    def retry_checkpoint(self) -> None:
        """Write the current record again after a ``PersistenceFailedError``.

        Transition logic is not re-run.  A no-op when nothing is pending.
        """
        with self._lock:
            if self._pending_write:
                self._persist()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _catch_up(self, now: datetime) -> ReconcileOutcome:
        return reconcile_record(self._record, now, max_steps=self._max_steps)

    def _commit(
        self,
        outcome: ReconcileOutcome,
        extra: list[PhaseTransition],
        now: datetime,
        record: SessionRecord | None = None,
    ) -> None:
        """Swap in the new record, persist it once, and re-arm alerts."""
        transitions = outcome.transitions + extra
        if not transitions:
            return

        self._record = record if record is not None else outcome.record
        for transition in transitions:
            logger.debug("SessionEngine: %s", transition)
        if outcome.cycles_skipped:
            logger.info(
                "SessionEngine: skipped %d escalation/lock cycles while catching up",
                outcome.cycles_skipped,
            )
        self._persist_and_rearm(now)

    def _persist_and_rearm(self, now: datetime) -> None:
        """Write the current record, then arm alerts for it even if the write failed."""
        failure: PersistenceFailedError | None = None
        try:
            self._persist()
        except PersistenceFailedError as exc:
            failure = exc

        if self._scheduler is not None:
            self._scheduler.phase_entered(self._record, now)

        if failure is not None:
            raise failure

    def _persist(self) -> None:
        try:
            self._store.save(self._record)
        except PersistenceFailedError:
            self._pending_write = True
            raise
        self._pending_write = False

    def __repr__(self) -> str:
        return f"SessionEngine(phase={self._record.phase.value!r}, store={self._store!r})"
