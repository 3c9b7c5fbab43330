"""Adapt remote commands into engine operations.

``RequestStart`` becomes ``SessionEngine.start`` and ``RequestLock``
becomes ``SessionEngine.force_lock``.  The dispatcher remembers the ids of
recently handled commands so a redelivered command is not applied twice.
With a ``CommandHistory`` the remembered ids are also written to storage
and reloaded by the next dispatcher, so redeliveries to a later process
are caught too.

Commands can be applied synchronously (``dispatch``) or queued from any
thread (``submit``) and applied later, in arrival order, by whoever owns
the engine's event loop (``drain``).

Classes
-------
- CommandDispatcher  — de-duplicating command → engine adapter
"""
from __future__ import annotations

import logging
import queue
import threading
from collections import OrderedDict
from datetime import timedelta

from commitment_timer.commands.models import (
    CommandKind,
    DispatchResult,
    DispatchStatus,
    RemoteCommand,
)
from commitment_timer.commands.history import CommandHistory
from commitment_timer.errors import InvalidTransitionError, PersistenceFailedError
from commitment_timer.session.engine import SessionEngine

logger = logging.getLogger(__name__)

DEFAULT_DEDUPE_WINDOW = 256


class CommandDispatcher:
    """Applies remote commands to a ``SessionEngine`` at most once each.

    Parameters
    ----------
    engine:
        The engine to drive.
    dedupe_window:
        How many handled command ids to remember.
    stale_after:
        Ignore commands issued longer ago than this, measured with the
        engine's clock.  ``None`` disables the check.
    history:
        Optional durable store for handled ids.  The dispatcher starts
        from the ids it holds and writes the window back after every
        dispatch.
    """

    def __init__(
        self,
        engine: SessionEngine,
        *,
        dedupe_window: int = DEFAULT_DEDUPE_WINDOW,
        stale_after: timedelta | None = None,
        history: CommandHistory | None = None,
    ) -> None:
        if dedupe_window < 1:
            raise ValueError("dedupe_window must be at least 1")
        self._engine = engine
        self._dedupe_window = dedupe_window
        self.stale_after = stale_after
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._last_applied: RemoteCommand | None = None
        self._queue: queue.Queue[RemoteCommand] = queue.Queue()
        self._lock = threading.Lock()
        self._history = history
        if history is not None:
            for command_id in history.load()[-dedupe_window:]:
                self._seen[command_id] = None

    @property
    def last_applied(self) -> RemoteCommand | None:
        """The most recent command that changed the session."""
        return self._last_applied

    def has_seen(self, command_id: str) -> bool:
        return command_id in self._seen

    # ------------------------------------------------------------------
    # Synchronous path
    # ------------------------------------------------------------------

    def dispatch(self, command: RemoteCommand) -> DispatchResult:
        """Apply ``command`` unless it is a repeat or stale.

        Returns
        -------
        DispatchResult
            ``REJECTED`` when the engine refused the transition (for
            example ``START_SESSION`` while a session is running).

        Raises
        ------
        PersistenceFailedError
            Propagated from the engine.  The command is still recorded as
            handled because its transition took effect.
        """
        with self._lock:
            if command.command_id in self._seen:
                logger.debug("CommandDispatcher: ignoring duplicate %r", command.command_id)
                return self._result(command, DispatchStatus.DUPLICATE)

            if self._is_stale(command):
                self._remember(command.command_id)
                self._write_history()
                logger.info(
                    "CommandDispatcher: ignoring stale %s from %r issued at %s",
                    command.kind.value,
                    command.origin_principal,
                    command.issued_at.isoformat(),
                )
                return self._result(command, DispatchStatus.STALE)

            self._remember(command.command_id)
            try:
                self._apply(command)
            except InvalidTransitionError as exc:
                logger.info(
                    "CommandDispatcher: rejected %s from %r: %s",
                    command.kind.value,
                    command.origin_principal,
                    exc,
                )
                return self._result(command, DispatchStatus.REJECTED, str(exc))
            except PersistenceFailedError:
                self._last_applied = command
                raise
            finally:
                self._write_history()

            self._last_applied = command
            logger.info(
                "CommandDispatcher: applied %s from %r",
                command.kind.value,
                command.origin_principal,
            )
            return self._result(command, DispatchStatus.APPLIED)

    # ------------------------------------------------------------------
    # Queued path
    # ------------------------------------------------------------------

    def submit(self, command: RemoteCommand) -> None:
        """Queue ``command``; safe to call from any thread."""
        self._queue.put(command)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> list[DispatchResult]:
        """Dispatch every queued command in arrival order."""
        results: list[DispatchResult] = []
        while True:
            try:
                command = self._queue.get_nowait()
            except queue.Empty:
                return results
            try:
                results.append(self.dispatch(command))
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply(self, command: RemoteCommand) -> None:
        if command.kind is CommandKind.START:
            self._engine.start()
        elif command.kind is CommandKind.LOCK:
            self._engine.force_lock()
        else:  # pragma: no cover - enum is exhaustive
            raise ValueError(f"Unknown command kind {command.kind!r}")

    def _is_stale(self, command: RemoteCommand) -> bool:
        if self.stale_after is None:
            return False
        return self._engine.clock.now() - command.issued_at > self.stale_after

    def _remember(self, command_id: str) -> None:
        self._seen[command_id] = None
        while len(self._seen) > self._dedupe_window:
            self._seen.popitem(last=False)

    def _write_history(self) -> None:
        if self._history is None:
            return
        try:
            self._history.save(list(self._seen))
        except PersistenceFailedError as exc:
            # The session itself is unaffected; only later redeliveries
            # to another process lose their duplicate check.
            logger.warning("CommandDispatcher: command history not written: %s", exc)

    def _result(
        self, command: RemoteCommand, status: DispatchStatus, reason: str = ""
    ) -> DispatchResult:
        return DispatchResult(command, status, self._engine.phase, reason)
