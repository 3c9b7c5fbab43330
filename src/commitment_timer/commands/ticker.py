"""Background tick loop.

``SessionTicker`` is the single consumer that feeds both producers into
the engine: on every tick it first applies queued remote commands, then
reconciles against the wall clock.  Running both from one thread keeps
them in arrival order without any extra coordination.

Classes
-------
- SessionTicker  — fixed-interval drain + reconcile loop
"""
from __future__ import annotations

import logging
import threading

from commitment_timer.commands.dispatcher import CommandDispatcher
from commitment_timer.errors import InvalidDurationsError, PersistenceFailedError
from commitment_timer.session.engine import SessionEngine
from commitment_timer.session.state import SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 1.0


class SessionTicker:
    """Calls ``drain`` and ``reconcile`` every ``interval`` seconds.

    Parameters
    ----------
    engine:
        The engine to tick.
    dispatcher:
        Optional dispatcher whose queue is drained before each reconcile.
    interval:
        Seconds between ticks.
    """

    def __init__(
        self,
        engine: SessionEngine,
        dispatcher: CommandDispatcher | None = None,
        interval: float = DEFAULT_TICK_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._engine = engine
        self._dispatcher = dispatcher
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> SessionRecord:
        """Run one drain + reconcile.

        Persistence failures and degenerate durations are logged and left
        for the next tick; the loop keeps running.
        """
        try:
            if self._engine.pending_write:
                self._engine.retry_checkpoint()
            if self._dispatcher is not None:
                self._dispatcher.drain()
            self._engine.reconcile()
        except PersistenceFailedError as exc:
            logger.warning("SessionTicker: checkpoint not written, will retry: %s", exc)
        except InvalidDurationsError as exc:
            logger.error("SessionTicker: %s", exc)
        self.ticks += 1
        return self._engine.record

    def _run(self) -> None:
        logger.debug("SessionTicker: started (interval=%.2fs)", self.interval)
        while not self._stop.wait(self.interval):
            self.tick()
        logger.debug("SessionTicker: stopped after %d ticks", self.ticks)

    def start(self) -> None:
        """Start ticking on a daemon thread."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-ticker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to stop and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> SessionTicker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()
