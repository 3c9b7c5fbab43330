"""CLI entry point for commitment-timer.

Invoked as::

    commitment-timer [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m commitment_timer.cli.main

Commands
--------
- version       — Show version information
- session       — Session command group

Session sub-commands
--------------------
- session status     — Catch up and show the current phase
- session start      — Start a session
- session end        — End the running session early
- session lock       — Lock immediately
- session reset      — Return a completed session to idle
- session durations  — Show or change phase durations
- session command    — Apply a remote command (START_SESSION / TRIGGER_LOCK)
- session watch      — Reconcile on a fixed interval and report changes

Every session sub-command holds the installation lock while it loads,
catches up, mutates and saves the checkpoint.
"""
from __future__ import annotations

import contextlib
import logging
import sys
import time
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from commitment_timer.config import TimerConfig, load_config

if TYPE_CHECKING:
    from commitment_timer.session.engine import SessionEngine
    from commitment_timer.storage.base import StorageBackend

console = Console()
err_console = Console(stderr=True)

_PHASE_STYLES = {
    "idle": "dim",
    "active": "green",
    "escalating": "yellow",
    "locked": "bold red",
    "completed": "cyan",
}


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _make_backend(config: TimerConfig) -> StorageBackend:
    """Instantiate the storage backend named by ``config.storage``."""
    from commitment_timer.storage.filesystem import FilesystemBackend
    from commitment_timer.storage.memory import InMemoryBackend
    from commitment_timer.storage.sqlite import SQLiteBackend

    if config.storage == "memory":
        return InMemoryBackend()
    if config.storage == "filesystem":
        return FilesystemBackend(storage_dir=config.storage_dir)
    if config.storage == "sqlite":
        return SQLiteBackend(db_path=config.resolved_db_path)
    if config.storage == "redis":
        from commitment_timer.storage.redis import RedisBackend

        return RedisBackend(url=config.redis_url)
    console.print(f"[red]Unknown storage backend: {config.storage!r}[/red]")
    sys.exit(1)


@contextlib.contextmanager
def _open_engine(config: TimerConfig) -> Iterator[SessionEngine]:
    """Yield a resumed ``SessionEngine`` while holding the installation lock."""
    from commitment_timer.checkpoint.locking import FileLock
    from commitment_timer.checkpoint.store import CheckpointStore
    from commitment_timer.scheduling.adapter import SchedulerAdapter
    from commitment_timer.scheduling.base import InMemoryScheduler
    from commitment_timer.session.engine import SessionEngine

    backend = _make_backend(config)
    store = CheckpointStore(
        backend,
        key=config.record_key,
        default_durations=config.durations,
    )
    adapter = SchedulerAdapter(InMemoryScheduler())

    lock = (
        FileLock(config.lock_path)
        if config.storage in ("filesystem", "sqlite")
        else contextlib.nullcontext()
    )
    try:
        with lock:
            yield SessionEngine.open(store, scheduler=adapter)
    except TimeoutError as exc:
        console.print(f"[red]Another process holds the session:[/red] {exc}")
        sys.exit(1)


def _fail(exc: Exception) -> None:
    console.print(f"[red]Error:[/red] {exc}")
    sys.exit(1)


def _phase_text(phase: str) -> str:
    style = _PHASE_STYLES.get(phase, "white")
    return f"[{style}]{phase.upper()}[/{style}]"


def _render_status(engine: SessionEngine) -> None:
    from commitment_timer.scheduling.base import InMemoryScheduler

    record = engine.record
    progress = engine.progress()

    table = Table(title="Session", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")

    table.add_row("phase", _phase_text(record.phase.value))
    if progress.ends_at is not None:
        table.add_row("ends_at", progress.ends_at.isoformat())
        table.add_row("remaining", f"{progress.remaining:.0f}s of {progress.total:.0f}s")
    table.add_row("streak", str(record.streak))
    table.add_row("total_accrued", f"{record.total_accrued:.0f}s")
    durations = record.durations
    table.add_row(
        "durations",
        f"active={durations.active_duration:.0f}s "
        f"escalation={durations.escalation_duration:.0f}s "
        f"lock={durations.lock_duration:.0f}s",
    )

    scheduler = engine.scheduler.scheduler if engine.scheduler else None
    if isinstance(scheduler, InMemoryScheduler) and len(scheduler):
        table.add_row(
            "reminders",
            "\n".join(f"{a.alert_id} @ {a.fire_at.isoformat()}" for a in scheduler.pending),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="commitment-timer")
@click.option("--config", "config_path", default=None, help="Path to config.yaml.")
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Commitment timer with escalation and remote locks"""
    ctx.ensure_object(dict)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    try:
        ctx.obj["config"] = load_config(config_path)
    except ValueError as exc:
        _fail(exc)


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from commitment_timer import __version__

    console.print(f"[bold]commitment-timer[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# session command group
# ---------------------------------------------------------------------------


@cli.group(name="session")
@click.option(
    "--storage",
    default=None,
    type=click.Choice(["memory", "filesystem", "sqlite", "redis"], case_sensitive=False),
    help="Storage backend (overrides the config file).",
)
@click.option("--storage-dir", default=None, help="Directory for checkpoint files and the lock.")
@click.option("--db-path", default=None, help="Path to SQLite database (sqlite backend).")
@click.pass_context
def session_group(
    ctx: click.Context,
    storage: str | None,
    storage_dir: str | None,
    db_path: str | None,
) -> None:
    """Session commands."""
    config: TimerConfig = ctx.obj["config"]
    overrides: dict[str, object] = {}
    if storage:
        overrides["storage"] = storage.lower()
    if storage_dir:
        overrides["storage_dir"] = storage_dir
    if db_path:
        overrides["db_path"] = db_path
    if overrides:
        config = TimerConfig.model_validate({**config.model_dump(), **overrides})
    ctx.obj["config"] = config


@session_group.command(name="status")
@click.option("--json-output", is_flag=True, help="Output the record as JSON.")
@click.pass_context
def session_status(ctx: click.Context, json_output: bool) -> None:
    """Catch the session up to now and show it."""
    with _open_engine(ctx.obj["config"]) as engine:
        if json_output:
            console.print_json(engine.record.model_dump_json())
            return
        _render_status(engine)


@session_group.command(name="start")
@click.pass_context
def session_start(ctx: click.Context) -> None:
    """Start a new session."""
    from commitment_timer.errors import TimerError

    with _open_engine(ctx.obj["config"]) as engine:
        try:
            record = engine.start()
        except TimerError as exc:
            _fail(exc)
        console.print(
            f"[green]Session started.[/green] Escalation at "
            f"{record.next_boundary().isoformat()}"
        )


@session_group.command(name="end")
@click.pass_context
def session_end(ctx: click.Context) -> None:
    """End the running session and credit it."""
    from commitment_timer.errors import TimerError

    with _open_engine(ctx.obj["config"]) as engine:
        try:
            record = engine.end()
        except TimerError as exc:
            _fail(exc)
        console.print(
            f"[green]Session completed.[/green] streak={record.streak} "
            f"total={record.total_accrued:.0f}s"
        )


@session_group.command(name="lock")
@click.pass_context
def session_lock(ctx: click.Context) -> None:
    """Lock the running session immediately."""
    from commitment_timer.errors import TimerError

    with _open_engine(ctx.obj["config"]) as engine:
        try:
            record = engine.force_lock()
        except TimerError as exc:
            _fail(exc)
        console.print(f"[red]Locked[/red] until {record.lock_deadline.isoformat()}")


@session_group.command(name="reset")
@click.pass_context
def session_reset(ctx: click.Context) -> None:
    """Return a completed session to idle."""
    from commitment_timer.errors import TimerError

    with _open_engine(ctx.obj["config"]) as engine:
        try:
            engine.reset()
        except TimerError as exc:
            _fail(exc)
        console.print("[green]Session reset to idle.[/green]")


@session_group.command(name="durations")
@click.option("--active", type=float, default=None, help="Active phase length in seconds.")
@click.option("--escalation", type=float, default=None, help="Escalation window in seconds.")
@click.option("--lock", "lock_", type=float, default=None, help="Lock window in seconds.")
@click.pass_context
def session_durations(
    ctx: click.Context,
    active: float | None,
    escalation: float | None,
    lock_: float | None,
) -> None:
    """Show durations, or change the ones given."""
    from commitment_timer.errors import TimerError
    from commitment_timer.session.state import SessionDurations

    with _open_engine(ctx.obj["config"]) as engine:
        current = engine.durations
        if active is not None or escalation is not None or lock_ is not None:
            updated = SessionDurations(
                active_duration=current.active_duration if active is None else active,
                escalation_duration=(
                    current.escalation_duration if escalation is None else escalation
                ),
                lock_duration=current.lock_duration if lock_ is None else lock_,
            )
            try:
                engine.set_durations(updated)
            except TimerError as exc:
                _fail(exc)
            current = updated
            console.print("[green]Durations updated.[/green]")

        table = Table(title="Durations")
        table.add_column("Phase", style="bold cyan")
        table.add_column("Seconds", justify="right")
        table.add_row("active", f"{current.active_duration:g}")
        table.add_row("escalation", f"{current.escalation_duration:g}")
        table.add_row("lock", f"{current.lock_duration:g}")
        console.print(table)


@session_group.command(name="command")
@click.argument("kind", type=click.Choice(["start", "lock"], case_sensitive=False))
@click.option("--principal", required=True, help="Who sent the command.")
@click.option("--command-id", default=None, help="Sender-assigned command identifier.")
@click.option(
    "--issued-at",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]),
    default=None,
    help="When the command was issued (UTC). Defaults to now.",
)
@click.pass_context
def session_command(
    ctx: click.Context,
    kind: str,
    principal: str,
    command_id: str | None,
    issued_at: datetime | None,
) -> None:
    """Apply a remote START or LOCK command from PRINCIPAL."""
    from commitment_timer.commands.dispatcher import CommandDispatcher
    from commitment_timer.commands.history import CommandHistory
    from commitment_timer.commands.models import CommandKind, RemoteCommand
    from commitment_timer.errors import TimerError

    config: TimerConfig = ctx.obj["config"]
    fields: dict[str, object] = {
        "kind": CommandKind.START if kind.lower() == "start" else CommandKind.LOCK,
        "origin_principal": principal,
    }
    if command_id:
        fields["command_id"] = command_id
    if issued_at is not None:
        fields["issued_at"] = issued_at.replace(tzinfo=timezone.utc)
    command = RemoteCommand.model_validate(fields)

    with _open_engine(config) as engine:
        dispatcher = CommandDispatcher(
            engine,
            dedupe_window=config.dedupe_window,
            stale_after=config.stale_after,
            history=CommandHistory.beside(engine.store),
        )
        try:
            result = dispatcher.dispatch(command)
        except TimerError as exc:
            _fail(exc)

    style = "green" if result.applied else "yellow"
    detail = f" ({result.reason})" if result.reason else ""
    console.print(
        f"[{style}]{command.kind.value} {result.status.value}[/{style}]{detail} "
        f"→ {_phase_text(result.phase.value)}"
    )


@session_group.command(name="watch")
@click.option("--ticks", default=0, show_default=True, help="Stop after N ticks (0 = forever).")
@click.option("--interval", default=None, type=float, help="Seconds between ticks.")
@click.pass_context
def session_watch(ctx: click.Context, ticks: int, interval: float | None) -> None:
    """Reconcile on a fixed interval and print every phase change."""
    from commitment_timer.errors import TimerError

    config: TimerConfig = ctx.obj["config"]
    interval = interval if interval is not None else config.tick_interval
    last_phase: str | None = None
    count = 0
    try:
        while ticks == 0 or count < ticks:
            with _open_engine(config) as engine:
                try:
                    engine.reconcile()
                except TimerError as exc:
                    console.print(f"[yellow]Warning:[/yellow] {exc}")
                phase = engine.phase.value
                if phase != last_phase:
                    stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
                    console.print(f"{stamp} {_phase_text(phase)}")
                    last_phase = phase
            count += 1
            if ticks == 0 or count < ticks:
                time.sleep(interval)
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


if __name__ == "__main__":
    cli()
