"""Claude Code CLI adapter: process execution, security policy, sessions and tmux."""

__version__ = "0.1.0"
