"""Tests for configuration module."""

from __future__ import annotations

import pytest

from claudecli_adapter.config import (
    MODEL_ALIASES,
    AppConfig,
    CliConfig,
    SecurityConfig,
    load_config,
    save_config,
)


@pytest.fixture
def config_paths(tmp_path, monkeypatch):
    import claudecli_adapter.config as cfg_module

    config_file = tmp_path / "config.toml"
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path)
    return config_file


class TestModelAliases:
    def test_opus(self):
        assert "claude-opus" in MODEL_ALIASES["opus"]

    def test_sonnet(self):
        assert "claude-sonnet" in MODEL_ALIASES["sonnet"]

    def test_haiku(self):
        assert "claude-haiku" in MODEL_ALIASES["haiku"]


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.cli.cli_path == "claude"
        assert config.cli.timeout == 300
        assert config.cli.join_timeout == 5
        assert config.session.file_prefix == "claude-session"
        assert config.security.enabled is True
        assert "ls" in config.security.whitelisted_commands
        assert "/" not in config.security.blacklisted_paths
        assert config.tmux.default_session_prefix == "claude-"

    def test_security_lists_are_not_shared(self):
        first, second = SecurityConfig(), SecurityConfig()
        first.whitelisted_commands.append("make")
        assert "make" not in second.whitelisted_commands

    def test_save_and_load(self, config_paths):
        config = AppConfig(cli=CliConfig(default_model="opus", timeout=600, default_environment={"A": "1"}))
        config.security.whitelisted_commands = ["ls", "make"]

        save_config(config)
        assert config_paths.exists()

        loaded = load_config()
        assert loaded.cli.default_model == "opus"
        assert loaded.cli.timeout == 600
        assert loaded.cli.default_environment == {"A": "1"}
        assert loaded.security.whitelisted_commands == ["ls", "make"]

    def test_env_overrides(self, config_paths, monkeypatch):
        monkeypatch.setenv("CLAUDECLI_PATH", "/opt/claude")
        monkeypatch.setenv("CLAUDECLI_TIMEOUT", "42")
        monkeypatch.setenv("CLAUDECLI_REQUIRE_APPROVAL", "yes")

        loaded = load_config()
        assert loaded.cli.cli_path == "/opt/claude"
        assert loaded.cli.timeout == 42.0
        assert loaded.security.require_approval_for_all_commands is True


class TestDefaultOptions:
    def test_unset_values_stay_none(self):
        options = AppConfig(cli=CliConfig(default_output_format="")).default_options()
        assert options.model is None
        assert options.output_format is None
        assert options.max_tokens is None
        assert options.verbose is None
        assert options.environment_variables is None

    def test_alias_is_resolved(self):
        options = AppConfig(cli=CliConfig(default_model="sonnet", default_max_tokens=256)).default_options()
        assert options.model == MODEL_ALIASES["sonnet"]
        assert options.max_tokens == 256
        assert options.output_format == "text"
