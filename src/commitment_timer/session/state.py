"""Session record domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation
and JSON serialisation of checkpoints.

Classes
-------
- Phase             — enum for the session lifecycle phases
- SessionDurations  — the active / escalation / lock duration triple
- SessionRecord     — the single persisted session snapshot
- PhaseTransition   — one phase change applied to a record
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class Phase(str, Enum):
    """Lifecycle phases of a commitment session."""

    IDLE = "idle"
    ACTIVE = "active"
    ESCALATING = "escalating"
    LOCKED = "locked"
    COMPLETED = "completed"

    @property
    def is_running(self) -> bool:
        """True for every phase between ``start()`` and completion."""
        return self in (Phase.ACTIVE, Phase.ESCALATING, Phase.LOCKED)

    @property
    def is_anchored(self) -> bool:
        """True for the phases measured against ``SessionRecord.anchor``."""
        return self in (Phase.ACTIVE, Phase.ESCALATING)


class SessionDurations(BaseModel):
    """Configured phase lengths, in seconds.

    Non-positive values are accepted on construction so that an old or
    hand-edited checkpoint still loads.  ``SessionEngine.set_durations``
    refuses them.

    Parameters
    ----------
    active_duration:
        Length of the Active phase.
    escalation_duration:
        Length of each Escalating window.
    lock_duration:
        Length of each Locked window.
    """

    active_duration: float = 300.0
    escalation_duration: float = 60.0
    lock_duration: float = 60.0

    model_config = {"frozen": True}

    @property
    def active(self) -> timedelta:
        return timedelta(seconds=self.active_duration)

    @property
    def escalation(self) -> timedelta:
        return timedelta(seconds=self.escalation_duration)

    @property
    def lock(self) -> timedelta:
        return timedelta(seconds=self.lock_duration)

    @property
    def cycle(self) -> timedelta:
        """One full Escalating + Locked loop."""
        return self.escalation + self.lock

    def non_positive_fields(self) -> list[str]:
        """Return the names of fields that are zero or negative."""
        return [
            name
            for name in ("active_duration", "escalation_duration", "lock_duration")
            if getattr(self, name) <= 0
        ]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SessionRecord(BaseModel):
    """Complete snapshot of the session lifecycle.

    This is the only entity the engine persists.  Records are immutable:
    every transition builds a new one through ``evolve``, which re-runs
    validation.

    Parameters
    ----------
    phase:
        Current lifecycle phase.
    anchor:
        Reference instant for the Active / Escalating thresholds.  Set if
        and only if ``phase`` is Active or Escalating.  On every loop back
        from Locked it is re-derived as ``loop_back - active_duration``.
    lock_deadline:
        Instant at which the Locked phase ends.  Set if and only if
        ``phase`` is Locked.
    durations:
        Phase lengths, read at evaluation time.
    streak:
        Number of completed sessions.
    total_accrued:
        Seconds credited across all completed sessions.
    """

    phase: Phase = Phase.IDLE
    anchor: datetime | None = None
    lock_deadline: datetime | None = None
    durations: SessionDurations = Field(default_factory=SessionDurations)
    streak: int = Field(default=0, ge=0)
    total_accrued: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}

    @field_validator("anchor", "lock_deadline")
    @classmethod
    def _normalise_timestamp(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_phase_fields(self) -> "SessionRecord":
        if self.phase.is_anchored != (self.anchor is not None):
            raise ValueError(
                f"anchor must be set exactly in active/escalating (phase={self.phase.value})"
            )
        if (self.phase is Phase.LOCKED) != (self.lock_deadline is not None):
            raise ValueError(
                f"lock_deadline must be set exactly in locked (phase={self.phase.value})"
            )
        return self

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def evolve(self, **changes: Any) -> SessionRecord:
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def next_boundary(self) -> datetime | None:
        """Return the instant at which the current phase ends.

        Returns
        -------
        datetime | None
            None for Idle and Completed, which only end on request.
        """
        if self.phase is Phase.ACTIVE and self.anchor is not None:
            return self.anchor + self.durations.active
        if self.phase is Phase.ESCALATING and self.anchor is not None:
            return self.anchor + self.durations.active + self.durations.escalation
        if self.phase is Phase.LOCKED:
            return self.lock_deadline
        return None


@dataclass(frozen=True)
class PhaseTransition:
    """A single phase change.

    Parameters
    ----------
    source:
        Phase before the change.
    target:
        Phase after the change.
    at:
        The instant the change logically happened.  For time-driven
        changes this is the boundary instant, not the time the catch-up
        ran.
    cause:
        What triggered it: ``"time"``, ``"start"``, ``"end"``,
        ``"force_lock"`` or ``"reset"``.
    """

    source: Phase
    target: Phase
    at: datetime
    cause: str = "time"

    def __str__(self) -> str:
        return f"{self.source.value}->{self.target.value}@{self.at.isoformat()} ({self.cause})"
