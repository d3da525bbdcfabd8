"""Process execution and command building."""

from claudecli_adapter.core.command_builder import CommandBuilder
from claudecli_adapter.core.executor import ProcessExecutor

__all__ = ["CommandBuilder", "ProcessExecutor"]
