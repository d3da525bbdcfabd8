"""Tests for session registry and session sends."""

from __future__ import annotations

import os

import pytest

from claudecli_adapter.errors import SessionClosedError
from claudecli_adapter.models import ExecutionOptions
from claudecli_adapter.services.claude import ClaudeCliService


@pytest.fixture
def service(app_config, fake_executor):
    return ClaudeCliService(app_config, executor=fake_executor)


def flag_value(argv, flag):
    return argv[argv.index(flag) + 1]


class TestSessionFiles:
    def test_paths_are_derived_from_session_id(self, service, app_config):
        session = service.create_session("abc")
        directory = app_config.session.directory
        assert session.history_file == os.path.join(directory, "claude-session-abc.history")
        assert session.context_file == os.path.join(directory, "claude-session-abc.context")

    def test_persistence_can_be_disabled(self, service, app_config):
        app_config.session.persist_history = False
        session = service.create_session("abc")
        assert session.history_file is None
        assert session.context_file is not None


class TestSend:
    @pytest.mark.asyncio
    async def test_send_passes_session_files(self, service, fake_executor):
        session = service.create_session("abc", ExecutionOptions(model="claude-haiku-4-5-20251001"))
        response = await session.send("hello")

        argv = fake_executor.run.call_args.args[0]
        assert flag_value(argv, "--history") == session.history_file
        assert flag_value(argv, "--context") == session.context_file
        assert flag_value(argv, "--model") == "claude-haiku-4-5-20251001"
        assert response.session_id == "abc"

    @pytest.mark.asyncio
    async def test_session_files_override_defaults(self, service, fake_executor):
        session = service.create_session("abc", ExecutionOptions(history_file="/elsewhere.history"))
        await session.send("hello")
        argv = fake_executor.run.call_args.args[0]
        assert flag_value(argv, "--history") == session.history_file

    @pytest.mark.asyncio
    async def test_call_options_fill_unset_fields(self, service, fake_executor):
        session = service.create_session("abc", ExecutionOptions(model="default-model"))
        await session.send("hello", ExecutionOptions(model="call-model", max_tokens=50))
        argv = fake_executor.run.call_args.args[0]
        # session defaults sit above per-call options
        assert flag_value(argv, "--model") == "default-model"
        assert flag_value(argv, "--max-tokens") == "50"

    @pytest.mark.asyncio
    async def test_send_async(self, service, fake_executor):
        session = service.create_session("abc")
        response = await session.send_async("hello")
        assert response.session_id == "abc"
        fake_executor.run.assert_awaited_once()

    def test_update_default_options(self, service):
        session = service.create_session("abc")
        session.update_default_options(ExecutionOptions(verbose=True))
        assert session.effective_options().verbose is True


class TestClosedSession:
    @pytest.mark.asyncio
    async def test_send_after_close_fails_every_time(self, service, fake_executor):
        session = service.create_session("abc")
        session.close()

        for _ in range(3):
            with pytest.raises(SessionClosedError):
                await session.send("hello")
        with pytest.raises(SessionClosedError):
            session.send_async("hello")
        with pytest.raises(SessionClosedError):
            session.stream("hello")
        with pytest.raises(SessionClosedError):
            await session.send_stream("hello", print)

        fake_executor.run.assert_not_awaited()

    def test_close_is_idempotent(self, service):
        session = service.create_session("abc")
        session.close()
        session.close()
        assert not session.active
        assert not service.is_session_active("abc")

    @pytest.mark.asyncio
    async def test_destroyed_session_cannot_send(self, service):
        session = service.create_session("abc")
        service.destroy_session("abc")
        assert "abc" not in service.sessions
        with pytest.raises(SessionClosedError):
            await session.send("hello")


class TestRegistry:
    def test_create_overwrites_existing(self, service):
        first = service.create_session("abc")
        second = service.create_session("abc")
        assert service.get_session("abc") is second
        assert not first.active
        assert second.active
        assert service.is_session_active("abc")

    def test_closing_replaced_session_keeps_new_one(self, service):
        first = service.create_session("abc")
        second = service.create_session("abc")
        first.close()
        assert service.get_session("abc") is second

    def test_destroy_unknown_is_noop(self, service):
        service.destroy_session("missing")
        assert not service.is_session_active("missing")

    def test_close_all(self, service):
        sessions = [service.create_session(str(i)) for i in range(3)]
        service.sessions.close_all()
        assert len(service.sessions) == 0
        assert all(not s.active for s in sessions)

    def test_session_ids(self, service):
        service.create_session("a")
        service.create_session("b")
        assert sorted(service.sessions.session_ids()) == ["a", "b"]
