"""Translate session phases into scheduler alerts.

The adapter holds no state of its own: every call derives the full set
of alerts from the record it is given, arms those that lie in the
future, and cancels the boundary ids that no longer apply.

Boundary ids
------------
- ``active_end``      — Active ends, escalation begins
- ``escalation_end``  — Escalating ends, the lock engages
- ``lock_end``        — the current lock window ends

Classes
-------
- SchedulerAdapter  — phase entry → arm / cancel calls
"""
from __future__ import annotations

import logging
from datetime import datetime

from commitment_timer.scheduling.base import DeadlineScheduler, ScheduledAlert
from commitment_timer.session.state import Phase, SessionRecord

logger = logging.getLogger(__name__)

ACTIVE_END = "active_end"
ESCALATION_END = "escalation_end"
LOCK_END = "lock_end"
ALERT_IDS: tuple[str, ...] = (ACTIVE_END, ESCALATION_END, LOCK_END)

_MESSAGES: dict[str, tuple[str, str]] = {
    ACTIVE_END: ("Time's Up!", "Escalation phase starting. Please wrap up."),
    ESCALATION_END: ("Support Lock Incoming", "Escalation ending. Lock will engage shortly."),
    LOCK_END: ("Lock Lifted", "The lock has ended. Escalation resumes."),
}


def alerts_for(record: SessionRecord) -> list[ScheduledAlert]:
    """Return every alert implied by ``record``, regardless of ``now``."""
    durations = record.durations
    planned: list[tuple[str, datetime]] = []

    if record.phase is Phase.ACTIVE and record.anchor is not None:
        planned.append((ACTIVE_END, record.anchor + durations.active))
        planned.append(
            (ESCALATION_END, record.anchor + durations.active + durations.escalation)
        )
    elif record.phase is Phase.ESCALATING and record.anchor is not None:
        planned.append(
            (ESCALATION_END, record.anchor + durations.active + durations.escalation)
        )
    elif record.phase is Phase.LOCKED and record.lock_deadline is not None:
        planned.append((LOCK_END, record.lock_deadline))

    alerts = []
    for alert_id, fire_at in planned:
        title, body = _MESSAGES[alert_id]
        alerts.append(
            ScheduledAlert(
                alert_id=alert_id,
                fire_at=fire_at,
                payload={"title": title, "body": body, "phase": record.phase.value},
            )
        )
    return alerts


class SchedulerAdapter:
    """Keeps a ``DeadlineScheduler`` in step with the session record.

    Parameters
    ----------
    scheduler:
        The external scheduler to drive.
    """

    def __init__(self, scheduler: DeadlineScheduler) -> None:
        self._scheduler = scheduler

    @property
    def scheduler(self) -> DeadlineScheduler:
        return self._scheduler

    def phase_entered(self, record: SessionRecord, now: datetime) -> list[ScheduledAlert]:
        """Arm the alerts for ``record``'s phase and cancel the rest.

        Alerts whose fire time is not after ``now`` are skipped.

        Returns
        -------
        list[ScheduledAlert]
            The alerts that were armed.
        """
        if not record.phase.is_running:
            self._scheduler.cancel_all()
            logger.debug("SchedulerAdapter: %s, cancelled all alerts", record.phase.value)
            return []

        armed: list[ScheduledAlert] = []
        wanted = {alert.alert_id: alert for alert in alerts_for(record)}
        for alert_id in ALERT_IDS:
            alert = wanted.get(alert_id)
            if alert is None or alert.fire_at <= now:
                self._scheduler.cancel(alert_id)
                continue
            self._scheduler.arm(alert.alert_id, alert.fire_at, alert.payload)
            armed.append(alert)

        logger.debug(
            "SchedulerAdapter: %s, armed %s",
            record.phase.value,
            [alert.alert_id for alert in armed] or "nothing",
        )
        return armed

    def foreground(self) -> None:
        """Cancel everything; the running process takes over from here."""
        self._scheduler.cancel_all()
        logger.debug("SchedulerAdapter: foreground, cancelled all alerts")
