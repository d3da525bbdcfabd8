"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from claudecli_adapter.config import (
    AppConfig,
    CliConfig,
    LoggingConfig,
    SecurityConfig,
    SessionConfig,
    StorageConfig,
    TmuxConfig,
)
from claudecli_adapter.core.executor import ProcessExecutor
from claudecli_adapter.models import ProcessOutcome


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        cli=CliConfig(cli_path="claude", default_output_format="text", timeout=10),
        session=SessionConfig(directory=str(tmp_path / "sessions")),
        security=SecurityConfig(),
        tmux=TmuxConfig(enabled=True, auto_cleanup_on_shutdown=True),
        storage=StorageConfig(db_path=str(tmp_path / "test.db")),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "test.log")),
    )


@pytest.fixture
def fake_executor():
    """A ProcessExecutor whose run() never spawns anything."""
    executor = ProcessExecutor(timeout=10)
    executor.run = AsyncMock(return_value=ProcessOutcome(exit_code=0, stdout="Hello from Claude!"))
    executor.shutdown = AsyncMock()
    return executor
