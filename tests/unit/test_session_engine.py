"""Unit tests for commitment_timer.session.engine.SessionEngine."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from commitment_timer.checkpoint.store import CheckpointStore
from commitment_timer.errors import (
    InvalidDurationsError,
    InvalidTransitionError,
    PersistenceFailedError,
)
from commitment_timer.scheduling.adapter import (
    ACTIVE_END,
    ESCALATION_END,
    LOCK_END,
    SchedulerAdapter,
)
from commitment_timer.scheduling.base import InMemoryScheduler
from commitment_timer.session.clock import FrozenClock
from commitment_timer.session.engine import SessionEngine
from commitment_timer.session.state import Phase, SessionDurations, SessionRecord
from commitment_timer.storage.memory import InMemoryBackend

T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FlakyBackend(InMemoryBackend):
    """In-memory backend whose writes can be switched off."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.write_count = 0

    def save(self, key: str, data: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.write_count += 1
        super().save(key, data)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture()
def backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture()
def store(backend: FlakyBackend) -> CheckpointStore:
    return CheckpointStore(backend)


@pytest.fixture()
def scheduler() -> InMemoryScheduler:
    return InMemoryScheduler()


@pytest.fixture()
def engine(
    store: CheckpointStore, scheduler: InMemoryScheduler, clock: FrozenClock
) -> SessionEngine:
    return SessionEngine(store, scheduler=SchedulerAdapter(scheduler), clock=clock)


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


class TestStart:
    def test_start_from_idle(self, engine: SessionEngine) -> None:
        record = engine.start()
        assert record.phase is Phase.ACTIVE
        assert record.anchor == T0
        assert engine.phase is Phase.ACTIVE

    def test_start_persists(self, engine: SessionEngine, store: CheckpointStore) -> None:
        engine.start()
        assert store.load() == engine.record

    def test_start_twice_rejected(self, engine: SessionEngine, clock: FrozenClock) -> None:
        first = engine.start()
        clock.advance(10)
        with pytest.raises(InvalidTransitionError, match="start"):
            engine.start()
        assert engine.record == first

    def test_start_rejected_while_locked(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        engine.force_lock()
        with pytest.raises(InvalidTransitionError):
            engine.start()
        assert engine.phase is Phase.LOCKED

    def test_start_from_completed_keeps_totals(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        engine.end()
        clock.advance(5)
        record = engine.start()
        assert record.phase is Phase.ACTIVE
        assert record.streak == 1
        assert record.anchor == T0 + timedelta(seconds=5)

    def test_start_arms_boundary_alerts(
        self, engine: SessionEngine, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        assert [alert.alert_id for alert in scheduler.pending] == [ACTIVE_END, ESCALATION_END]
        assert scheduler.get(ACTIVE_END).fire_at == T0 + timedelta(seconds=300)

    def test_rejected_start_still_commits_catch_up(
        self, engine: SessionEngine, clock: FrozenClock, store: CheckpointStore
    ) -> None:
        engine.start()
        clock.advance(310)
        with pytest.raises(InvalidTransitionError):
            engine.start()
        assert engine.phase is Phase.ESCALATING
        assert store.load().phase is Phase.ESCALATING


# ---------------------------------------------------------------------------
# end
# ---------------------------------------------------------------------------


class TestEnd:
    def test_end_credits_active_duration(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        clock.advance(42)
        record = engine.end()
        assert record.phase is Phase.COMPLETED
        assert record.streak == 1
        assert record.total_accrued == 300
        assert record.anchor is None

    def test_end_from_escalating(self, engine: SessionEngine, clock: FrozenClock) -> None:
        engine.start()
        clock.advance(330)
        assert engine.reconcile().phase is Phase.ESCALATING
        assert engine.end().phase is Phase.COMPLETED

    def test_end_while_locked_rejected_and_unchanged(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        locked = engine.force_lock()
        clock.advance(5)
        with pytest.raises(InvalidTransitionError, match="locked"):
            engine.end()
        assert engine.record == locked

    @pytest.mark.parametrize("setup", ["idle", "completed"])
    def test_end_without_session_rejected(self, engine: SessionEngine, setup: str) -> None:
        if setup == "completed":
            engine.start()
            engine.end()
        with pytest.raises(InvalidTransitionError):
            engine.end()

    def test_end_caught_up_into_lock_is_rejected(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        clock.advance(365)
        with pytest.raises(InvalidTransitionError):
            engine.end()
        assert engine.phase is Phase.LOCKED

    def test_streak_accumulates(self, engine: SessionEngine) -> None:
        for _ in range(3):
            engine.start()
            engine.end()
        assert engine.record.streak == 3
        assert engine.record.total_accrued == 900


# ---------------------------------------------------------------------------
# force_lock
# ---------------------------------------------------------------------------


class TestForceLock:
    def test_force_lock_from_active(self, engine: SessionEngine, clock: FrozenClock) -> None:
        engine.start()
        clock.advance(10)
        record = engine.force_lock()
        assert record.phase is Phase.LOCKED
        assert record.anchor is None
        assert record.lock_deadline == T0 + timedelta(seconds=70)

    def test_force_lock_restarts_lock_window(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        engine.force_lock()
        clock.advance(30)
        record = engine.force_lock()
        assert record.lock_deadline == T0 + timedelta(seconds=90)

    def test_force_lock_requires_running_session(self, engine: SessionEngine) -> None:
        with pytest.raises(InvalidTransitionError, match="force_lock"):
            engine.force_lock()
        assert engine.phase is Phase.IDLE

    def test_force_lock_arms_lock_end_only(
        self, engine: SessionEngine, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        engine.force_lock()
        assert [alert.alert_id for alert in scheduler.pending] == [LOCK_END]

    def test_lock_then_loop_back_to_escalating(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        engine.force_lock()
        clock.advance(60)
        record = engine.reconcile()
        assert record.phase is Phase.ESCALATING
        assert record.anchor == T0 + timedelta(seconds=60) - timedelta(seconds=300)


# ---------------------------------------------------------------------------
# reset
# ---------------------------------------------------------------------------


class TestReset:
    def test_reset_completed_to_idle(self, engine: SessionEngine) -> None:
        engine.start()
        engine.end()
        record = engine.reset()
        assert record.phase is Phase.IDLE
        assert record.streak == 1

    def test_reset_requires_completed(self, engine: SessionEngine) -> None:
        engine.start()
        with pytest.raises(InvalidTransitionError, match="reset"):
            engine.reset()


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_no_write_when_nothing_changes(
        self, engine: SessionEngine, backend: FlakyBackend, clock: FrozenClock
    ) -> None:
        engine.start()
        writes = backend.write_count
        clock.advance(100)
        engine.reconcile()
        assert backend.write_count == writes

    def test_multi_transition_catch_up_writes_once(
        self, engine: SessionEngine, backend: FlakyBackend, clock: FrozenClock
    ) -> None:
        engine.start()
        writes = backend.write_count
        clock.advance(hours=5)
        engine.reconcile()
        assert backend.write_count == writes + 1

    def test_reconcile_with_explicit_now(self, engine: SessionEngine) -> None:
        engine.start()
        record = engine.reconcile(T0 + timedelta(seconds=360))
        assert record.phase is Phase.LOCKED

    def test_alerts_follow_reconciled_phase(
        self, engine: SessionEngine, clock: FrozenClock, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        clock.advance(301)
        engine.reconcile()
        assert [alert.alert_id for alert in scheduler.pending] == [ESCALATION_END]

    def test_degenerate_durations_raise_after_progress(
        self, store: CheckpointStore, clock: FrozenClock
    ) -> None:
        durations = SessionDurations(active_duration=10, escalation_duration=0, lock_duration=0)
        record = SessionRecord(phase=Phase.ACTIVE, anchor=T0, durations=durations)
        engine = SessionEngine(store, clock=clock, record=record)
        clock.advance(100)
        with pytest.raises(InvalidDurationsError) as exc_info:
            engine.reconcile()
        assert set(exc_info.value.fields) == {"escalation_duration", "lock_duration"}
        assert engine.phase is not Phase.ACTIVE
        assert store.load() == engine.record


# ---------------------------------------------------------------------------
# resume
# ---------------------------------------------------------------------------


class TestResume:
    def test_resume_after_long_gap(
        self, store: CheckpointStore, scheduler: InMemoryScheduler, clock: FrozenClock
    ) -> None:
        first = SessionEngine(store, scheduler=SchedulerAdapter(scheduler), clock=clock)
        first.start()

        clock.advance(300 + 7 * 120 + 30)
        second = SessionEngine.open(store, scheduler=SchedulerAdapter(scheduler), clock=clock)
        assert second.phase is Phase.ESCALATING
        assert second.progress().elapsed == 30
        assert store.load() == second.record

    def test_resume_rearms_even_without_change(
        self, store: CheckpointStore, scheduler: InMemoryScheduler, clock: FrozenClock
    ) -> None:
        first = SessionEngine(store, scheduler=SchedulerAdapter(scheduler), clock=clock)
        first.start()
        scheduler.cancel_all()

        SessionEngine.open(store, scheduler=SchedulerAdapter(scheduler), clock=clock)
        assert scheduler.get(ACTIVE_END) is not None

    def test_resume_from_empty_store_is_idle(self, store: CheckpointStore, clock: FrozenClock) -> None:
        engine = SessionEngine.open(store, clock=clock)
        assert engine.phase is Phase.IDLE

    def test_open_swallows_degenerate_durations(self, store: CheckpointStore, clock: FrozenClock) -> None:
        durations = SessionDurations(escalation_duration=0, lock_duration=0)
        store.save(SessionRecord(phase=Phase.ESCALATING, anchor=T0, durations=durations))
        clock.advance(1000)
        engine = SessionEngine.open(store, clock=clock)
        assert engine.phase.is_running

    def test_on_foreground_catches_up(
        self, engine: SessionEngine, clock: FrozenClock, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        clock.advance(370)
        record = engine.on_foreground()
        assert record.phase is Phase.LOCKED
        assert [alert.alert_id for alert in scheduler.pending] == [LOCK_END]


# ---------------------------------------------------------------------------
# set_durations
# ---------------------------------------------------------------------------


class TestSetDurations:
    def test_updates_without_transition(
        self, engine: SessionEngine, clock: FrozenClock, store: CheckpointStore
    ) -> None:
        engine.start()
        clock.advance(400)
        record = engine.set_durations(SessionDurations(active_duration=900))
        assert record.phase is Phase.ACTIVE
        assert store.load().durations.active_duration == 900

    def test_new_durations_apply_on_next_catch_up(
        self, engine: SessionEngine, clock: FrozenClock
    ) -> None:
        engine.start()
        engine.set_durations(SessionDurations(active_duration=60))
        clock.advance(61)
        assert engine.reconcile().phase is Phase.ESCALATING

    def test_non_positive_rejected(self, engine: SessionEngine) -> None:
        before = engine.record
        with pytest.raises(InvalidDurationsError) as exc_info:
            engine.set_durations(SessionDurations(lock_duration=0))
        assert exc_info.value.fields == ["lock_duration"]
        assert engine.record == before

    def test_rearms_alerts_with_new_durations(
        self, engine: SessionEngine, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        record = engine.set_durations(SessionDurations(active_duration=3000))
        assert scheduler.get(ACTIVE_END).fire_at == T0 + timedelta(seconds=3000)
        assert scheduler.get(ACTIVE_END).fire_at == record.next_boundary()
        assert scheduler.get(ESCALATION_END).fire_at == T0 + timedelta(seconds=3060)

    def test_rearms_lock_end_while_locked(
        self, engine: SessionEngine, scheduler: InMemoryScheduler
    ) -> None:
        engine.start()
        engine.force_lock()
        engine.set_durations(SessionDurations(lock_duration=600))
        # The running lock keeps its deadline; only later windows change.
        assert [alert.alert_id for alert in scheduler.pending] == [LOCK_END]
        assert scheduler.get(LOCK_END).fire_at == T0 + timedelta(seconds=60)

    def test_rearms_even_when_write_fails(
        self,
        engine: SessionEngine,
        backend: FlakyBackend,
        scheduler: InMemoryScheduler,
    ) -> None:
        engine.start()
        backend.fail_writes = True
        with pytest.raises(PersistenceFailedError):
            engine.set_durations(SessionDurations(active_duration=900))
        assert engine.pending_write
        assert scheduler.get(ACTIVE_END).fire_at == T0 + timedelta(seconds=900)


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


class TestPersistenceFailure:
    def test_failed_write_keeps_in_memory_transition(
        self, engine: SessionEngine, backend: FlakyBackend, store: CheckpointStore
    ) -> None:
        backend.fail_writes = True
        with pytest.raises(PersistenceFailedError) as exc_info:
            engine.start()
        assert isinstance(exc_info.value.__cause__, OSError)
        assert engine.phase is Phase.ACTIVE
        assert engine.pending_write
        assert store.load().phase is Phase.IDLE

    def test_retry_checkpoint_writes_current_record(
        self, engine: SessionEngine, backend: FlakyBackend, store: CheckpointStore
    ) -> None:
        backend.fail_writes = True
        with pytest.raises(PersistenceFailedError):
            engine.start()
        backend.fail_writes = False
        engine.retry_checkpoint()
        assert not engine.pending_write
        assert store.load() == engine.record

    def test_retry_is_noop_when_nothing_pending(
        self, engine: SessionEngine, backend: FlakyBackend
    ) -> None:
        engine.retry_checkpoint()
        assert backend.write_count == 0

    def test_failed_write_still_arms_alerts(
        self, engine: SessionEngine, backend: FlakyBackend, scheduler: InMemoryScheduler
    ) -> None:
        backend.fail_writes = True
        with pytest.raises(PersistenceFailedError):
            engine.start()
        assert len(scheduler) == 2


# ---------------------------------------------------------------------------
# progress
# ---------------------------------------------------------------------------


class TestProgress:
    def test_progress_while_active(self, engine: SessionEngine, clock: FrozenClock) -> None:
        engine.start()
        clock.advance(75)
        progress = engine.progress()
        assert progress.phase is Phase.ACTIVE
        assert progress.remaining == 225

    def test_repr(self, engine: SessionEngine) -> None:
        assert "idle" in repr(engine)
