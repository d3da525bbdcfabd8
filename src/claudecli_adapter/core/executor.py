"""Process execution engine: spawn, drain, time out, stream."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Coroutine, Sequence

from claudecli_adapter.models import ExecutionOptions, OutputLine, ProcessOutcome

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

READ_CHUNK = 64 * 1024
# StreamReader buffer limit; also the longest line stream() can deliver.
STREAM_LIMIT = 1024 * 1024
# Poll interval for a child's exit status
EXIT_POLL_INTERVAL = 0.05


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _spawn_failure(argv: Sequence[str], error: Exception) -> str:
    """Log a spawn error and describe it for the outcome."""
    if isinstance(error, FileNotFoundError) and error.filename in (None, argv[0]):
        logger.error("Command not found: %s", argv[0])
        return f"Command not found: {argv[0]}"
    if isinstance(error, OSError):
        logger.error("Failed to spawn %s: %s", argv[0], error)
    else:
        logger.exception("Failed to spawn %s", argv[0])
    return f"Process execution failed: {error}"


@dataclass
class _StreamState:
    exit_code: int = -1
    timed_out: bool = False


class ProcessExecutor:
    """Run external commands with concurrent output draining and a hard timeout.

    stdout and stderr are each drained by their own task, started right after
    the process is spawned, so a child that fills one pipe while we wait on the
    other (or on its exit) can never stall. Every failure below this class is
    turned into a ProcessOutcome with exit code -1.
    """

    def __init__(
        self,
        timeout: float = 300.0,
        join_timeout: float = 5.0,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self.timeout = timeout
        self.join_timeout = join_timeout
        self.shutdown_timeout = shutdown_timeout
        self._tasks: set[asyncio.Task] = set()
        self._processes: set[asyncio.subprocess.Process] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(
        self,
        argv: Sequence[str],
        options: ExecutionOptions | None = None,
        timeout: float | None = None,
    ) -> ProcessOutcome:
        """Run a command to completion and capture its output."""
        timeout = self.timeout if timeout is None else timeout
        start = time.monotonic()

        failure = self._refuse(argv)
        if failure is not None:
            return ProcessOutcome(exit_code=-1, stderr=failure)

        try:
            proc = await self._spawn(argv, options)
        except Exception as e:
            return ProcessOutcome(exit_code=-1, stderr=_spawn_failure(argv, e), elapsed_ms=_elapsed_ms(start))

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        drains = (
            self.submit(self._drain(proc.stdout, stdout_chunks)),
            self.submit(self._drain(proc.stderr, stderr_chunks)),
        )

        try:
            try:
                exit_code = await asyncio.wait_for(self._wait_exit(proc), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Process %s (pid %s) timed out after %gs, killing it", argv[0], proc.pid, timeout)
                await self._kill(proc)
                await self._join(drains)
                stderr = _decode(stderr_chunks)
                reason = f"Process timed out after {timeout:g}s"
                return ProcessOutcome(
                    exit_code=-1,
                    stdout=_decode(stdout_chunks),
                    stderr=f"{stderr.rstrip()}\n{reason}" if stderr.strip() else reason,
                    timed_out=True,
                    elapsed_ms=_elapsed_ms(start),
                )

            await self._join(drains)
            return ProcessOutcome(
                exit_code=exit_code,
                stdout=_decode(stdout_chunks),
                stderr=_decode(stderr_chunks),
                elapsed_ms=_elapsed_ms(start),
            )
        finally:
            for task in drains:
                task.cancel()
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
            self._processes.discard(proc)

    def run_async(
        self,
        argv: Sequence[str],
        options: ExecutionOptions | None = None,
        timeout: float | None = None,
    ) -> asyncio.Task[ProcessOutcome]:
        """Start ``run`` in the background and return its task."""
        return self.submit(self.run(argv, options, timeout))

    def stream(
        self,
        argv: Sequence[str],
        options: ExecutionOptions | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[OutputLine]:
        """Yield output lines from both streams as soon as they are complete.

        The sequence ends when the process closes both streams. Closing the
        iterator early kills the process.
        """
        return self._stream(argv, options, timeout, _StreamState())

    async def run_streaming(
        self,
        argv: Sequence[str],
        options: ExecutionOptions | None,
        on_stdout_line: Callable[[str], None],
        on_stderr_line: Callable[[str], None] | None = None,
        timeout: float | None = None,
    ) -> ProcessOutcome:
        """Callback flavour of ``stream``; returns exit code and timeout flag only."""
        start = time.monotonic()
        state = _StreamState()
        async with contextlib.aclosing(self._stream(argv, options, timeout, state)) as lines:
            async for line in lines:
                if line.stream == STDOUT:
                    on_stdout_line(line.text)
                elif on_stderr_line is not None:
                    on_stderr_line(line.text)
        return ProcessOutcome(exit_code=state.exit_code, timed_out=state.timed_out, elapsed_ms=_elapsed_ms(start))

    async def shutdown(self) -> None:
        """Stop accepting work, wait for in-flight tasks, then kill stragglers."""
        if self._closed:
            return
        self._closed = True

        pending = {task for task in self._tasks if not task.done()}
        if pending:
            logger.info("Waiting up to %gs for %d in-flight task(s)", self.shutdown_timeout, len(pending))
            _, pending = await asyncio.wait(pending, timeout=self.shutdown_timeout)
        if pending:
            logger.warning("Cancelling %d task(s) still running after shutdown timeout", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.wait(pending, timeout=self.join_timeout)

        for proc in list(self._processes):
            if proc.returncode is None:
                logger.warning("Killing leftover process pid %s", proc.pid)
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
        self._processes.clear()
        logger.info("Process executor shut down")

    def _refuse(self, argv: Sequence[str]) -> str | None:
        if self._closed:
            return "Executor is shut down"
        if not argv:
            return "Empty command"
        return None

    async def _stream(
        self,
        argv: Sequence[str],
        options: ExecutionOptions | None,
        timeout: float | None,
        state: _StreamState,
    ) -> AsyncIterator[OutputLine]:
        timeout = self.timeout if timeout is None else timeout

        failure = self._refuse(argv)
        if failure is not None:
            yield OutputLine(STDERR, failure)
            return

        try:
            proc = await self._spawn(argv, options)
        except Exception as e:
            yield OutputLine(STDERR, _spawn_failure(argv, e))
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        queue: asyncio.Queue[OutputLine | None] = asyncio.Queue()
        pumps = (
            self.submit(self._pump(proc.stdout, STDOUT, queue)),
            self.submit(self._pump(proc.stderr, STDERR, queue)),
        )

        try:
            open_streams = len(pumps)
            while open_streams:
                item = await asyncio.wait_for(queue.get(), timeout=max(deadline - loop.time(), 0))
                if item is None:
                    open_streams -= 1
                    continue
                yield item

            if proc.returncode is not None:
                state.exit_code = proc.returncode
            else:
                remaining = max(deadline - loop.time(), 0.01)
                state.exit_code = await asyncio.wait_for(self._wait_exit(proc), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning("Streaming process %s (pid %s) timed out after %gs, killing it", argv[0], proc.pid, timeout)
            state.exit_code = -1
            state.timed_out = True
        finally:
            for task in pumps:
                task.cancel()
            if proc.returncode is None:
                await self._kill(proc)
            self._processes.discard(proc)

    async def _spawn(self, argv: Sequence[str], options: ExecutionOptions | None) -> asyncio.subprocess.Process:
        options = options or ExecutionOptions()
        env = None
        if options.environment_variables:
            env = os.environ.copy()
            env.update(options.environment_variables)

        # exec, not shell: argv elements are never re-parsed
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=options.working_directory,
            env=env,
            limit=STREAM_LIMIT,
        )
        self._processes.add(proc)
        logger.debug("Spawned pid %s: %s", proc.pid, argv[0])
        return proc

    async def _drain(self, reader: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
        if reader is None:
            return
        while True:
            chunk = await reader.read(READ_CHUNK)
            if not chunk:
                return
            chunks.append(chunk)

    async def _pump(
        self,
        reader: asyncio.StreamReader | None,
        name: str,
        queue: asyncio.Queue[OutputLine | None],
    ) -> None:
        try:
            if reader is None:
                return
            while True:
                try:
                    raw = await reader.readline()
                except ValueError:
                    logger.warning("Dropped an over-long %s line (limit %d bytes)", name, STREAM_LIMIT)
                    continue
                if not raw:
                    return
                queue.put_nowait(OutputLine(name, raw.decode("utf-8", errors="replace").rstrip("\r\n")))
        finally:
            queue.put_nowait(None)

    async def _join(self, drains: Sequence[asyncio.Task]) -> None:
        _, pending = await asyncio.wait(drains, timeout=self.join_timeout)
        if pending:
            logger.warning("Output drain did not finish within %gs; returning partial output", self.join_timeout)
            for task in pending:
                task.cancel()
        for task in drains:
            if task.done() and not task.cancelled() and task.exception() is not None:
                logger.warning("Output drain failed: %s", task.exception())

    async def _wait_exit(self, proc: asyncio.subprocess.Process) -> int:
        """Wait for the child's exit status only.

        ``proc.wait()`` also waits for both pipes to close, which a grandchild
        that inherited them can delay indefinitely.
        """
        while proc.returncode is None:
            await asyncio.sleep(EXIT_POLL_INTERVAL)
        return proc.returncode

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        try:
            await asyncio.wait_for(self._wait_exit(proc), timeout=self.join_timeout)
        except asyncio.TimeoutError:
            logger.warning("Process pid %s did not exit %gs after kill", proc.pid, self.join_timeout)

    def submit(self, coro: Coroutine) -> asyncio.Task:
        """Schedule a coroutine as a task the executor waits for on shutdown."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
