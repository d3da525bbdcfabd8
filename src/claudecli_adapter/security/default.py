"""Default allow/deny list security policy."""

from __future__ import annotations

import logging
import os
import re

from claudecli_adapter.config import SecurityConfig
from claudecli_adapter.models import CommandExecution
from claudecli_adapter.security.policy import ApprovalResult, FileOperation

logger = logging.getLogger(__name__)

# Case-folded substrings that escalate an allowed command to human approval
ESCALATION_MARKERS: tuple[str, ...] = ("sudo", "chmod", "chown", ">>", ">")


def _compile(patterns: list[str], kind: str) -> list[re.Pattern[str]]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error:
            logger.error("Invalid %s pattern: %s", kind, pattern)
    return compiled


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def _is_within(path: str, prefix: str) -> bool:
    """True if ``path`` is ``prefix`` or lies below it (component-wise)."""
    if path == prefix:
        return True
    return path.startswith(prefix if prefix.endswith(os.sep) else prefix + os.sep)


class DefaultSecurityPolicy:
    """Default-deny command policy plus path-prefix file policy.

    Commands: the blacklist (literal prefixes, case-folded; regexes against
    the raw command) is checked first, then the whitelist; anything else is
    denied. Files: blacklisted paths are always denied, and write/delete must
    additionally fall under a whitelisted path.
    """

    def __init__(self, config: SecurityConfig | None = None) -> None:
        self.config = config or SecurityConfig()
        self._whitelisted_commands = [c.strip().lower() for c in self.config.whitelisted_commands if c.strip()]
        self._blacklisted_commands = [c.strip().lower() for c in self.config.blacklisted_commands if c.strip()]
        self._whitelisted_patterns = _compile(self.config.whitelisted_patterns, "whitelist")
        self._blacklisted_patterns = _compile(self.config.blacklisted_patterns, "blacklist")
        self._whitelisted_paths = [_normalize(os.path.expanduser(p)) for p in self.config.whitelisted_paths]
        self._blacklisted_paths = [_normalize(os.path.expanduser(p)) for p in self.config.blacklisted_paths]

    @property
    def whitelisted_commands(self) -> list[str]:
        return list(self._whitelisted_commands)

    @property
    def blacklisted_commands(self) -> list[str]:
        return list(self._blacklisted_commands)

    @property
    def whitelisted_paths(self) -> list[str]:
        return list(self._whitelisted_paths)

    @property
    def blacklisted_paths(self) -> list[str]:
        return list(self._blacklisted_paths)

    def is_command_allowed(self, command: str | None) -> bool:
        if command is None or not command.strip():
            return False

        if self.config.log_all_commands:
            logger.info("Evaluating command: %s", command)

        folded = command.strip().lower()

        if any(folded.startswith(prefix) for prefix in self._blacklisted_commands):
            logger.warning("Command blocked by blacklist: %s", command)
            return False
        if any(p.fullmatch(command) for p in self._blacklisted_patterns):
            logger.warning("Command blocked by blacklist pattern: %s", command)
            return False

        if any(folded.startswith(prefix) for prefix in self._whitelisted_commands):
            logger.debug("Command allowed by whitelist: %s", command)
            return True
        if any(p.fullmatch(command) for p in self._whitelisted_patterns):
            logger.debug("Command allowed by whitelist pattern: %s", command)
            return True

        logger.warning("Command not explicitly allowed: %s", command)
        return False

    def is_file_operation_allowed(self, file_path: str | None, operation: FileOperation) -> bool:
        if file_path is None or not file_path.strip():
            return False

        try:
            path = _normalize(file_path)
        except (TypeError, ValueError, OSError):
            logger.exception("Error resolving path for %s check: %r", operation.value, file_path)
            return False

        if any(_is_within(path, prefix) for prefix in self._blacklisted_paths):
            logger.warning("File operation blocked for blacklisted path: %s (%s)", file_path, operation.value)
            return False

        if operation in (FileOperation.WRITE, FileOperation.DELETE):
            allowed = any(_is_within(path, prefix) for prefix in self._whitelisted_paths)
            if not allowed:
                logger.warning(
                    "%s not allowed outside whitelisted paths: %s", operation.value.capitalize(), file_path
                )
            return allowed

        return True

    def requires_approval(self, execution: CommandExecution | None) -> ApprovalResult:
        if execution is None or execution.command is None:
            return ApprovalResult.DENIED

        if self.config.require_approval_for_all_commands:
            return ApprovalResult.REQUIRES_USER_APPROVAL

        # The blacklist is a veto; a denied command is never escalated
        if not self.is_command_allowed(execution.command):
            return ApprovalResult.DENIED

        folded = execution.command.lower()
        if any(marker in folded for marker in ESCALATION_MARKERS):
            logger.info("Command requires user approval: %s", execution.command)
            return ApprovalResult.REQUIRES_USER_APPROVAL

        return ApprovalResult.APPROVED
