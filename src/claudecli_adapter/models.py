"""Data models for claudecli-adapter."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from claudecli_adapter.security.policy import ApprovalResult


class ExecutionMode(str, enum.Enum):
    DIRECT = "direct"
    TMUX = "tmux"
    PARALLEL = "parallel"


@dataclass
class TmuxOptions:
    """Options for running inside (or creating) a tmux session."""

    session_name: str | None = None
    window_name: str | None = None
    detached: bool | None = None
    log_file: str | None = None


@dataclass
class ExecutionOptions:
    """Sparse per-invocation options for the claude CLI.

    Every field defaults to ``None``, meaning "unset". An empty string is a
    value, not an absence.
    """

    model: str | None = None
    output_format: str | None = None
    api_key: str | None = None
    api_url: str | None = None
    dangerously_skip_permissions: bool | None = None
    continue_mode: bool | None = None
    verbose: bool | None = None
    context_file: str | None = None
    history_file: str | None = None
    output_file: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    additional_flags: list[str] | None = None
    environment_variables: dict[str, str] | None = None
    working_directory: str | None = None
    execution_mode: ExecutionMode | None = None
    tmux_options: TmuxOptions | None = None

    def merged(self, overlay: ExecutionOptions | None) -> ExecutionOptions:
        """Return a copy of self with every field set in ``overlay`` replaced."""
        return merge_options(self, overlay)


def merge_options(
    base: ExecutionOptions | None,
    overlay: ExecutionOptions | None,
) -> ExecutionOptions:
    """Merge two options records field by field; overlay wins where it is set.

    Lists, dicts and tmux options are copied, so the result never shares a
    mutable container with either input.
    """
    base = base or ExecutionOptions()
    overlay = overlay or ExecutionOptions()
    values = {}
    for f in fields(ExecutionOptions):
        value = getattr(overlay, f.name)
        if value is None:
            value = getattr(base, f.name)
        values[f.name] = copy.copy(value)
    return ExecutionOptions(**values)


@dataclass(frozen=True)
class CommandInvocation:
    """A fully built command ready to hand to the executor."""

    argv: tuple[str, ...]
    mode: ExecutionMode = ExecutionMode.DIRECT
    working_directory: str | None = None
    environment: Mapping[str, str] | None = None


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of one process invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


@dataclass(frozen=True)
class OutputLine:
    """One line of streamed process output."""

    stream: str  # "stdout" or "stderr"
    text: str


class ResponseStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


class ChangeType(str, enum.Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass
class ToolCall:
    tool_name: str = ""
    action: str = ""
    result: str = ""
    timestamp: datetime | None = None


@dataclass
class FileChange:
    file_path: str = ""
    change_type: ChangeType = ChangeType.MODIFY
    content: str | None = None
    timestamp: datetime | None = None
    allowed: bool | None = None


@dataclass
class CommandExecution:
    """A shell command the agent reports having run (or wanting to run)."""

    command: str | None = None
    output: str = ""
    error: str = ""
    exit_code: int | None = None
    timestamp: datetime | None = None
    approved: bool | None = None
    approval: ApprovalResult | None = None


@dataclass
class ClaudeResponse:
    """Response built from one claude CLI invocation."""

    session_id: str
    prompt: str
    response: str = ""
    status: ResponseStatus = ResponseStatus.SUCCESS
    timestamp: datetime = field(default_factory=datetime.now)
    raw_output: str = ""
    error_output: str = ""
    exit_code: int = 0
    execution_time_ms: int = 0
    tool_calls: list[ToolCall] = field(default_factory=list)
    file_changes: list[FileChange] = field(default_factory=list)
    command_executions: list[CommandExecution] = field(default_factory=list)

    @classmethod
    def from_outcome(cls, session_id: str, prompt: str, outcome: ProcessOutcome) -> ClaudeResponse:
        if outcome.timed_out:
            status = ResponseStatus.TIMEOUT
        elif outcome.exit_code == 0:
            status = ResponseStatus.SUCCESS
        else:
            status = ResponseStatus.ERROR
        return cls(
            session_id=session_id,
            prompt=prompt,
            response=outcome.stdout,
            status=status,
            raw_output=outcome.stdout,
            error_output=outcome.stderr,
            exit_code=outcome.exit_code,
            execution_time_ms=outcome.elapsed_ms,
        )
