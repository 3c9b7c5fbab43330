"""Deadline scheduler contract.

The scheduler is the external collaborator that fires alerts while the
process is suspended (an OS notification service, a cron-like daemon, a
push gateway).  The engine only arms and cancels alerts through this
interface.

Classes
-------
- ScheduledAlert     — one armed alert
- DeadlineScheduler  — abstract arm / cancel / cancel_all
- InMemoryScheduler  — records alerts in a dict (tests, CLI)
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledAlert:
    """An alert armed with a scheduler.

    Parameters
    ----------
    alert_id:
        Stable identifier per boundary kind, e.g. ``"active_end"``.
        Arming the same id again replaces the earlier alert.
    fire_at:
        Absolute UTC instant at which the alert should fire.
    payload:
        Free-form content for the delivered alert (title, body, phase).
    """

    alert_id: str
    fire_at: datetime
    payload: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "alert_id": self.alert_id,
            "fire_at": self.fire_at.isoformat(),
            "payload": dict(self.payload),
        }


class DeadlineScheduler(ABC):
    """Arms and cancels time-fired alerts."""

    @abstractmethod
    def arm(self, alert_id: str, fire_at: datetime, payload: dict[str, str]) -> None:
        """Schedule ``alert_id`` to fire at ``fire_at``, replacing any earlier one."""

    @abstractmethod
    def cancel(self, alert_id: str) -> None:
        """Cancel ``alert_id``.  Cancelling an unknown id is a no-op."""

    @abstractmethod
    def cancel_all(self) -> None:
        """Cancel every pending alert."""


class InMemoryScheduler(DeadlineScheduler):
    """Keeps armed alerts in a dict; nothing ever fires by itself.

    ``due(now)`` lets callers (tests, the CLI watcher) pop alerts whose
    time has come.
    """

    def __init__(self) -> None:
        self._alerts: dict[str, ScheduledAlert] = {}

    def arm(self, alert_id: str, fire_at: datetime, payload: dict[str, str]) -> None:
        self._alerts[alert_id] = ScheduledAlert(alert_id, fire_at, dict(payload))
        logger.debug("InMemoryScheduler: armed %r at %s", alert_id, fire_at.isoformat())

    def cancel(self, alert_id: str) -> None:
        if self._alerts.pop(alert_id, None) is not None:
            logger.debug("InMemoryScheduler: cancelled %r", alert_id)

    def cancel_all(self) -> None:
        self._alerts.clear()

    @property
    def pending(self) -> list[ScheduledAlert]:
        """Armed alerts ordered by fire time."""
        return sorted(self._alerts.values(), key=lambda alert: alert.fire_at)

    def get(self, alert_id: str) -> ScheduledAlert | None:
        return self._alerts.get(alert_id)

    def due(self, now: datetime) -> list[ScheduledAlert]:
        """Remove and return alerts with ``fire_at <= now``."""
        fired = [alert for alert in self.pending if alert.fire_at <= now]
        for alert in fired:
            del self._alerts[alert.alert_id]
        return fired

    def __len__(self) -> int:
        return len(self._alerts)

    def __repr__(self) -> str:
        return f"InMemoryScheduler(pending={len(self._alerts)})"
