"""Remote command message types.

A command is what another principal (a trusted family member) sends to
this installation through the command bus.  The bus delivers at least
once and not necessarily in order, so every command carries a stable
``command_id`` for de-duplication.

Classes
-------
- CommandKind      — START_SESSION / TRIGGER_LOCK
- RemoteCommand    — one inbound command
- DispatchStatus   — what the dispatcher did with a command
- DispatchResult   — status plus the resulting phase
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from commitment_timer.session.state import Phase


class CommandKind(str, Enum):
    """Kinds of remote command."""

    START = "START_SESSION"
    LOCK = "TRIGGER_LOCK"


class RemoteCommand(BaseModel):
    """An inbound command from another principal.

    Parameters
    ----------
    command_id:
        Identifier assigned by the sender; repeats are ignored.
    kind:
        What to do.
    origin_principal:
        Identity of the sender.  Not checked here; authorization happens
        before commands reach the dispatcher.
    issued_at:
        When the sender issued the command (UTC).
    """

    command_id: str = Field(default_factory=lambda: str(uuid4()))
    kind: CommandKind
    origin_principal: str
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("issued_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def request_start(cls, origin_principal: str, **kwargs: object) -> RemoteCommand:
        return cls(kind=CommandKind.START, origin_principal=origin_principal, **kwargs)

    @classmethod
    def request_lock(cls, origin_principal: str, **kwargs: object) -> RemoteCommand:
        return cls(kind=CommandKind.LOCK, origin_principal=origin_principal, **kwargs)


class DispatchStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    STALE = "stale"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one command.

    Parameters
    ----------
    command:
        The command that was handled.
    status:
        What happened to it.
    phase:
        Session phase after handling.
    reason:
        Why a command was rejected, empty otherwise.
    """

    command: RemoteCommand
    status: DispatchStatus
    phase: Phase
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.status is DispatchStatus.APPLIED
