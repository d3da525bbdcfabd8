"""Stored record types."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CommandRecord:
    """A stored command history entry."""

    id: int = 0
    session_id: str = ""
    command: str = ""
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    execution_time_ms: int = 0
    status: str = ""
    source: str = "claude"
    created_at: str = ""
