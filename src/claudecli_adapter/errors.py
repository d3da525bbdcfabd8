"""Exceptions raised by the adapter's session and tmux layers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from claudecli_adapter.models import ProcessOutcome


class AdapterError(Exception):
    """Base class for adapter errors."""


class SessionClosedError(AdapterError):
    """Raised when sending on a session that has been closed."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session is closed: {session_id}")
        self.session_id = session_id


class TmuxError(AdapterError):
    """Base class for tmux manager failures."""


class TmuxSessionNotFoundError(TmuxError):
    """The named tmux session does not exist on the tmux server."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tmux session does not exist: {name}")
        self.name = name


class TmuxCommandError(TmuxError):
    """A tmux control command exited non-zero."""

    def __init__(self, message: str, outcome: ProcessOutcome) -> None:
        super().__init__(f"{message}: {outcome.stderr.strip() or f'exit code {outcome.exit_code}'}")
        self.outcome = outcome
