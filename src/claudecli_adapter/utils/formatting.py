"""Output formatting helpers for the CLI."""

from __future__ import annotations

from claudecli_adapter.models import ClaudeResponse, ResponseStatus
from claudecli_adapter.security import ApprovalResult

STATUS_STYLES: dict[ResponseStatus, str] = {
    ResponseStatus.SUCCESS: "green",
    ResponseStatus.PARTIAL: "yellow",
    ResponseStatus.ERROR: "red",
    ResponseStatus.CANCELLED: "yellow",
    ResponseStatus.TIMEOUT: "red",
}

DECISION_STYLES: dict[ApprovalResult, str] = {
    ApprovalResult.APPROVED: "green",
    ApprovalResult.DENIED: "red",
    ApprovalResult.REQUIRES_USER_APPROVAL: "yellow",
}


def format_duration(ms: int) -> str:
    """Format milliseconds to human-readable duration."""
    if ms < 1000:
        return f"{ms}ms"
    elif ms < 60000:
        return f"{ms / 1000:.1f}s"
    else:
        minutes = ms // 60000
        seconds = (ms % 60000) // 1000
        return f"{minutes}m {seconds}s"


def format_response_header(response: ClaudeResponse) -> str:
    """One-line rich markup summary of a response."""
    style = STATUS_STYLES[response.status]
    elapsed = format_duration(response.execution_time_ms)
    return f"[{style}]{response.status.value.upper()}[/{style}] | exit {response.exit_code} | {elapsed}"


def format_response_body(response: ClaudeResponse) -> str:
    if response.status == ResponseStatus.SUCCESS:
        return response.response or "(no output)"
    return response.error_output or response.response or "(no output)"


def format_decision(command: str, result: ApprovalResult) -> str:
    style = DECISION_STYLES[result]
    return f"[{style}]{result.value.upper()}[/{style}] {command}"
