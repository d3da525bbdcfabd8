"""Claude Code CLI service: execution, streaming, review and sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import AsyncIterator, Callable, Iterable

from claudecli_adapter.config import AppConfig, get_config
from claudecli_adapter.core.command_builder import CommandBuilder
from claudecli_adapter.core.executor import STDOUT, ProcessExecutor
from claudecli_adapter.models import (
    ChangeType,
    ClaudeResponse,
    ExecutionMode,
    ExecutionOptions,
    merge_options,
)
from claudecli_adapter.security import ApprovalResult, DefaultSecurityPolicy, FileOperation, SecurityPolicy
from claudecli_adapter.services.sessions import ClaudeSession, SessionRegistry
from claudecli_adapter.services.tmux import TmuxSessionManager
from claudecli_adapter.storage.database import save_command

logger = logging.getLogger(__name__)

STREAM_FORMAT = "stream-json"


class ClaudeCliService:
    """Execute Claude Code CLI prompts and own the sessions that send them."""

    def __init__(
        self,
        config: AppConfig | None = None,
        executor: ProcessExecutor | None = None,
        policy: SecurityPolicy | None = None,
        builder: CommandBuilder | None = None,
    ) -> None:
        self.config = config or get_config()
        cli = self.config.cli
        self.executor = executor or ProcessExecutor(
            timeout=cli.timeout,
            join_timeout=cli.join_timeout,
            shutdown_timeout=cli.shutdown_timeout,
        )
        self.policy = policy or DefaultSecurityPolicy(self.config.security)
        self.builder = builder or CommandBuilder(cli.cli_path, self.config.tmux.tmux_path)
        self.sessions = SessionRegistry(self, self.config.session)
        self.tmux: TmuxSessionManager | None = None
        if self.config.tmux.enabled:
            self.tmux = TmuxSessionManager(
                self.executor,
                tmux_path=self.config.tmux.tmux_path,
                command_timeout=self.config.tmux.command_timeout,
                exact_match=self.config.tmux.exact_match,
            )
        self._defaults = self.config.default_options()
        self._closed = False

    async def execute(
        self,
        prompt: str,
        options: ExecutionOptions | None = None,
        session_id: str | None = None,
    ) -> ClaudeResponse:
        """Run one prompt to completion."""
        options = merge_options(self._defaults, options)
        invocation = self.builder.build_invocation(prompt, options)
        logger.debug("Executing claude (%s mode) in %s", invocation.mode.value, invocation.working_directory or ".")

        outcome = await self.executor.run(invocation.argv, options)
        response = ClaudeResponse.from_outcome(session_id or str(uuid.uuid4()), prompt, outcome)
        if outcome.timed_out:
            logger.warning("Claude timed out for session %s", response.session_id)
        elif not outcome.ok:
            logger.warning("Claude exited %d for session %s", outcome.exit_code, response.session_id)

        await save_command(
            session_id=response.session_id,
            command=f"[claude] {prompt}",
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            exit_code=outcome.exit_code,
            execution_time_ms=outcome.elapsed_ms,
            status=response.status.value,
            source="claude",
        )
        return response

    def execute_async(
        self,
        prompt: str,
        options: ExecutionOptions | None = None,
        session_id: str | None = None,
    ) -> asyncio.Task[ClaudeResponse]:
        return self.executor.submit(self.execute(prompt, options, session_id))

    async def execute_parallel(
        self,
        prompts: Iterable[str],
        options: ExecutionOptions | None = None,
    ) -> list[ClaudeResponse]:
        """Run independent prompts concurrently, one process each."""
        options = merge_options(options, ExecutionOptions(execution_mode=ExecutionMode.PARALLEL))
        return list(await asyncio.gather(*(self.execute(prompt, options) for prompt in prompts)))

    async def stream(self, prompt: str, options: ExecutionOptions | None = None) -> AsyncIterator[str]:
        """Yield stdout lines in stream-json format; stderr lines are logged."""
        options = merge_options(merge_options(self._defaults, options), ExecutionOptions(output_format=STREAM_FORMAT))
        argv = self.builder.build(prompt, options)
        async with contextlib.aclosing(self.executor.stream(argv, options)) as lines:
            async for line in lines:
                if line.stream == STDOUT:
                    yield line.text
                else:
                    logger.error("Stream error: %s", line.text)

    async def execute_stream(
        self,
        prompt: str,
        consumer: Callable[[str], None],
        options: ExecutionOptions | None = None,
    ) -> None:
        async with contextlib.aclosing(self.stream(prompt, options)) as lines:
            async for line in lines:
                consumer(line)

    def review(self, response: ClaudeResponse) -> ClaudeResponse:
        """Attach security decisions to the commands and file changes in a response."""
        if not self.config.security.enabled:
            return response

        for execution in response.command_executions:
            execution.approval = self.policy.requires_approval(execution)
            execution.approved = execution.approval == ApprovalResult.APPROVED

        for change in response.file_changes:
            operation = FileOperation.DELETE if change.change_type == ChangeType.DELETE else FileOperation.WRITE
            change.allowed = self.policy.is_file_operation_allowed(change.file_path, operation)

        return response

    def create_session(self, session_id: str, default_options: ExecutionOptions | None = None) -> ClaudeSession:
        return self.sessions.create_session(session_id, default_options)

    def get_session(self, session_id: str) -> ClaudeSession | None:
        return self.sessions.get_session(session_id)

    def destroy_session(self, session_id: str) -> None:
        self.sessions.destroy_session(session_id)

    def is_session_active(self, session_id: str) -> bool:
        return self.sessions.is_active(session_id)

    async def aclose(self) -> None:
        """Close every session and shut the executor down, once."""
        if self._closed:
            return
        self._closed = True
        self.sessions.close_all()
        if self.tmux is not None and self.config.tmux.auto_cleanup_on_shutdown:
            await self.tmux.kill_all_sessions()
        await self.executor.shutdown()

    async def __aenter__(self) -> ClaudeCliService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
