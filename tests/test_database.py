"""Tests for database module."""

from __future__ import annotations

import pytest

from claudecli_adapter.storage.database import (
    close_db,
    get_recent_commands,
    init_db,
    is_open,
    save_command,
)


class TestDatabase:
    @pytest.mark.asyncio
    async def test_init_and_save(self, tmp_path):
        await init_db(str(tmp_path / "test.db"))

        await save_command(
            session_id="s1",
            command="[claude] say hello",
            stdout="hello",
            stderr="",
            exit_code=0,
            execution_time_ms=50,
            status="success",
        )

        commands = await get_recent_commands(limit=5)
        assert len(commands) == 1
        assert commands[0].command == "[claude] say hello"
        assert commands[0].exit_code == 0
        assert commands[0].status == "success"
        assert commands[0].source == "claude"
        assert commands[0].created_at

        await close_db()

    @pytest.mark.asyncio
    async def test_multiple_commands_ordering(self, tmp_path):
        await init_db(str(tmp_path / "test2.db"))

        for i in range(5):
            await save_command(
                session_id="s1",
                command=f"cmd_{i}",
                stdout=f"out_{i}",
                stderr="",
                exit_code=0,
                execution_time_ms=i * 10,
            )

        commands = await get_recent_commands(limit=3)
        assert len(commands) == 3
        # Most recent first
        assert commands[0].command == "cmd_4"
        assert commands[2].command == "cmd_2"

        await close_db()

    @pytest.mark.asyncio
    async def test_filter_by_session(self, tmp_path):
        await init_db(str(tmp_path / "test3.db"))

        await save_command("a", "one", "", "", 0, 1)
        await save_command("b", "two", "", "", 0, 1, source="tmux")
        await save_command("a", "three", "", "", 1, 1)

        commands = await get_recent_commands(session_id="a")
        assert [c.command for c in commands] == ["three", "one"]

        other = await get_recent_commands(session_id="b")
        assert other[0].source == "tmux"

        await close_db()

    @pytest.mark.asyncio
    async def test_save_is_noop_when_closed(self):
        assert not is_open()
        await save_command("s1", "ignored", "", "", 0, 1)

    @pytest.mark.asyncio
    async def test_read_requires_init(self):
        with pytest.raises(RuntimeError):
            await get_recent_commands()
