"""Security policy contract for commands and file operations."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from claudecli_adapter.models import CommandExecution


class FileOperation(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    EXECUTE = "execute"


class ApprovalResult(str, enum.Enum):
    APPROVED = "approved"
    DENIED = "denied"
    REQUIRES_USER_APPROVAL = "requires_user_approval"


@runtime_checkable
class SecurityPolicy(Protocol):
    """Advisory checks; implementations decide, callers enforce."""

    def is_command_allowed(self, command: str | None) -> bool: ...

    def is_file_operation_allowed(self, file_path: str | None, operation: FileOperation) -> bool: ...

    def requires_approval(self, execution: CommandExecution | None) -> ApprovalResult: ...

    @property
    def whitelisted_commands(self) -> list[str]: ...

    @property
    def blacklisted_commands(self) -> list[str]: ...

    @property
    def whitelisted_paths(self) -> list[str]: ...

    @property
    def blacklisted_paths(self) -> list[str]: ...
