"""Error taxonomy for the session engine.

Every error is raised synchronously from the operation that detected it.
None of them is fatal: the engine stays usable after any of them.

Classes
-------
- TimerError              — base class for all engine errors
- InvalidTransitionError  — operation not permitted from the current phase
- InvalidDurationsError   — non-positive durations / degenerate catch-up
- PersistenceFailedError  — checkpoint write did not complete
"""
from __future__ import annotations


class TimerError(Exception):
    """Base class for errors raised by commitment-timer."""


class InvalidTransitionError(TimerError):
    """Raised when an operation is not permitted from the current phase.

    This is an expected condition: callers should simply not offer the
    action while the session is in ``phase``.
    """

    def __init__(self, operation: str, phase: str) -> None:
        self.operation = operation
        self.phase = phase
        super().__init__(f"Cannot {operation} while session is {phase}.")


class InvalidDurationsError(TimerError, ValueError):
    """Raised when configured durations are non-positive.

    Also raised by ``SessionEngine.reconcile`` when the catch-up loop had to
    stop at its step cap because the durations make the escalation/lock
    cycle degenerate.
    """

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        self.fields = list(fields)
        super().__init__(
            message or f"Durations must be strictly positive: {', '.join(self.fields)}"
        )


class PersistenceFailedError(TimerError):
    """Raised when a checkpoint write did not complete.

    The transition that triggered the write has already taken effect in
    memory.  Call ``SessionEngine.retry_checkpoint`` to retry the write.
    """

    def __init__(self, key: str, reason: str = "") -> None:
        self.key = key
        detail = f": {reason}" if reason else ""
        super().__init__(f"Checkpoint write for {key!r} failed{detail}")
