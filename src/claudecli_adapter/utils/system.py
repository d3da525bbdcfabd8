"""System utility checks."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path


def _check_binary(path: str, version_args: list[str], install_hint: str) -> tuple[bool, str]:
    resolved = shutil.which(path)
    if not resolved:
        return False, f"{path} not found. {install_hint}"
    try:
        result = subprocess.run(
            [resolved, *version_args],
            capture_output=True,
            text=True,
            timeout=10,
        )
        version = result.stdout.strip() or result.stderr.strip()
        return True, version
    except subprocess.TimeoutExpired:
        return False, f"{path} version check timed out"
    except Exception as e:
        return False, f"Error checking {path}: {e}"


def check_claude_cli(cli_path: str = "claude") -> tuple[bool, str]:
    """Check if Claude Code CLI is installed and return version."""
    return _check_binary(cli_path, ["--version"], "Install: npm install -g @anthropic-ai/claude-code")


def check_tmux(tmux_path: str = "tmux") -> tuple[bool, str]:
    """Check if tmux is installed and return version."""
    return _check_binary(tmux_path, ["-V"], "Install tmux with your system package manager.")


def check_directory(path: str) -> tuple[bool, str]:
    """Validate a working directory path."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        return False, f"Directory not found: {resolved}"
    if not resolved.is_dir():
        return False, f"Not a directory: {resolved}"
    return True, str(resolved)
