"""Per-conversation sessions on top of ClaudeCliService."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, AsyncIterator, Callable

from claudecli_adapter.config import SessionConfig
from claudecli_adapter.errors import SessionClosedError
from claudecli_adapter.models import ClaudeResponse, ExecutionOptions, merge_options

if TYPE_CHECKING:
    from claudecli_adapter.services.claude import ClaudeCliService

logger = logging.getLogger(__name__)


class ClaudeSession:
    """A named conversation with default options and derived history/context files.

    A closed session stays closed: every send on it raises SessionClosedError
    before anything is spawned.
    """

    def __init__(
        self,
        session_id: str,
        default_options: ExecutionOptions | None,
        registry: SessionRegistry,
    ) -> None:
        self.session_id = session_id
        self._default_options = default_options or ExecutionOptions()
        self._registry = registry
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def default_options(self) -> ExecutionOptions:
        return self._default_options

    def update_default_options(self, options: ExecutionOptions | None) -> None:
        self._default_options = options or ExecutionOptions()

    @property
    def history_file(self) -> str | None:
        if not self._registry.config.persist_history:
            return None
        return self._registry.session_path(self.session_id, "history")

    @property
    def context_file(self) -> str | None:
        if not self._registry.config.persist_context:
            return None
        return self._registry.session_path(self.session_id, "context")

    def effective_options(self, options: ExecutionOptions | None = None) -> ExecutionOptions:
        """Session files over the defaults, and that over the per-call options."""
        session_scoped = ExecutionOptions(history_file=self.history_file, context_file=self.context_file)
        return merge_options(options, merge_options(self._default_options, session_scoped))

    async def send(self, prompt: str, options: ExecutionOptions | None = None) -> ClaudeResponse:
        """Run a prompt with this session's options.

        ``options`` only fill fields the session leaves unset: a model passed
        here is ignored when the session defaults name one. Use
        update_default_options to change a session-wide value.
        """
        self._ensure_active()
        service = self._registry.service
        return await service.execute(prompt, self.effective_options(options), session_id=self.session_id)

    def send_async(
        self,
        prompt: str,
        options: ExecutionOptions | None = None,
    ) -> asyncio.Task[ClaudeResponse]:
        self._ensure_active()
        service = self._registry.service
        return service.execute_async(prompt, self.effective_options(options), session_id=self.session_id)

    def stream(self, prompt: str, options: ExecutionOptions | None = None) -> AsyncIterator[str]:
        self._ensure_active()
        return self._registry.service.stream(prompt, self.effective_options(options))

    async def send_stream(
        self,
        prompt: str,
        consumer: Callable[[str], None],
        options: ExecutionOptions | None = None,
    ) -> None:
        self._ensure_active()
        await self._registry.service.execute_stream(prompt, consumer, self.effective_options(options))

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._registry.discard(self)
        logger.info("Session closed: %s", self.session_id)

    def _ensure_active(self) -> None:
        if not self._active:
            raise SessionClosedError(self.session_id)

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"<ClaudeSession {self.session_id!r} {state}>"


class SessionRegistry:
    """Owns every live ClaudeSession, keyed by session id."""

    def __init__(self, service: ClaudeCliService, config: SessionConfig | None = None) -> None:
        self.service = service
        self.config = config or SessionConfig()
        self._sessions: dict[str, ClaudeSession] = {}

    def session_path(self, session_id: str, kind: str) -> str:
        return os.path.join(self.config.directory, f"{self.config.file_prefix}-{session_id}.{kind}")

    def create_session(self, session_id: str, default_options: ExecutionOptions | None = None) -> ClaudeSession:
        """Create a session; an existing session with the same id is replaced and closed."""
        session = ClaudeSession(session_id, default_options, self)
        previous = self._sessions.get(session_id)
        self._sessions[session_id] = session
        if previous is not None:
            logger.info("Replacing existing session: %s", session_id)
            previous.close()
        else:
            logger.info("Session created: %s", session_id)
        return session

    def get_session(self, session_id: str) -> ClaudeSession | None:
        return self._sessions.get(session_id)

    def destroy_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def is_active(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.active

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            session.close()
        self._sessions.clear()

    def discard(self, session: ClaudeSession) -> None:
        # Only drop the entry if it still points at this session object
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
