"""Tmux session manager built on the process executor."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from claudecli_adapter.core.executor import ProcessExecutor
from claudecli_adapter.errors import TmuxCommandError, TmuxSessionNotFoundError
from claudecli_adapter.models import ProcessOutcome, TmuxOptions

logger = logging.getLogger(__name__)


@dataclass
class TmuxSession:
    name: str
    options: TmuxOptions = field(default_factory=TmuxOptions)


class TmuxSessionManager:
    """Create, drive and tear down detached tmux sessions.

    The local session map is only a cache. The tmux server is the source of
    truth and is asked (``has-session``) before every operation, since a
    session can be killed behind our back.
    """

    def __init__(
        self,
        executor: ProcessExecutor,
        tmux_path: str = "tmux",
        command_timeout: float = 10.0,
        exact_match: bool = True,
    ) -> None:
        self.executor = executor
        self.tmux_path = tmux_path
        self.command_timeout = command_timeout
        self.exact_match = exact_match
        self._sessions: dict[str, TmuxSession] = {}

    @property
    def sessions(self) -> Mapping[str, TmuxSession]:
        return MappingProxyType(self._sessions)

    async def create_session(self, name: str, options: TmuxOptions | None = None) -> TmuxSession:
        """Create a detached session, or return the existing one."""
        options = options or TmuxOptions()
        if await self.session_exists(name):
            logger.warning("Tmux session %s already exists", name)
            session = self._sessions.get(name)
            if session is None:
                # Created outside this manager; adopt it
                session = self._sessions.setdefault(name, TmuxSession(name, options))
            return session

        args = ["new-session", "-d", "-s", name]
        if options.window_name is not None:
            args.extend(["-n", options.window_name])

        result = await self._tmux(*args)
        if not result.ok:
            raise TmuxCommandError(f"Failed to create tmux session {name}", result)

        if options.log_file is not None:
            piped = await self._tmux("pipe-pane", "-o", "-t", name, f"cat >> {shlex.quote(options.log_file)}")
            if not piped.ok:
                logger.error("Failed to pipe tmux session %s to %s: %s", name, options.log_file, piped.stderr)

        session = TmuxSession(name, options)
        self._sessions[name] = session
        logger.info("Created tmux session: %s", name)
        return session

    async def send_command(self, name: str, command: str) -> bool:
        await self._require(name)
        result = await self._tmux("send-keys", "-t", name, command, "Enter")
        if not result.ok:
            logger.error("Failed to send command to tmux session %s: %s", name, result.stderr)
        return result.ok

    async def capture_pane(self, name: str) -> str:
        await self._require(name)
        result = await self._tmux("capture-pane", "-t", name, "-p")
        if not result.ok:
            logger.error("Failed to capture pane from tmux session %s: %s", name, result.stderr)
            return ""
        return result.stdout

    async def attach_session(self, name: str) -> bool:
        await self._require(name)
        result = await self._tmux("attach-session", "-t", name)
        if not result.ok:
            logger.error("Failed to attach tmux session %s: %s", name, result.stderr)
        return result.ok

    async def kill_session(self, name: str) -> None:
        if not await self.session_exists(name):
            self._sessions.pop(name, None)
            return

        result = await self._tmux("kill-session", "-t", name)
        if result.ok:
            self._sessions.pop(name, None)
            logger.info("Killed tmux session: %s", name)
        else:
            logger.error("Failed to kill tmux session %s: %s", name, result.stderr)

    async def session_exists(self, name: str) -> bool:
        # A bare target also matches by prefix, so "work" would find "work-2"
        target = f"={name}" if self.exact_match else name
        result = await self._tmux("has-session", "-t", target)
        return result.ok

    async def list_sessions(self) -> list[str]:
        result = await self._tmux("list-sessions", "-F", "#{session_name}")
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def kill_all_sessions(self) -> None:
        """Best-effort kill of every session this manager knows about."""
        for name in list(self._sessions):
            try:
                await self.kill_session(name)
            except Exception:
                logger.exception("Failed to kill tmux session %s", name)

    async def _require(self, name: str) -> None:
        if not await self.session_exists(name):
            self._sessions.pop(name, None)
            raise TmuxSessionNotFoundError(name)

    async def _tmux(self, *args: str) -> ProcessOutcome:
        return await self.executor.run([self.tmux_path, *args], timeout=self.command_timeout)
