"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from claudecli_adapter.models import ExecutionOptions

CONFIG_DIR = Path.home() / ".claudecli-adapter"
CONFIG_FILE = CONFIG_DIR / "config.toml"

MODEL_ALIASES: dict[str, str] = {
    "opus": "claude-opus-4-6",
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
}

DEFAULT_WHITELISTED_COMMANDS = ["ls", "pwd", "echo", "cat", "grep", "find", "which", "date", "whoami"]
DEFAULT_BLACKLISTED_COMMANDS = ["rm -rf /", "dd", "mkfs", "format", ":(){:|:&};:", "shutdown", "reboot"]
DEFAULT_WHITELISTED_PATTERNS = [
    r"^git (status|log|diff|show).*",
    r"^npm (list|info|view).*",
    r"^yarn (list|info|why).*",
]
DEFAULT_BLACKLISTED_PATTERNS = [
    r".*\brm\s+-rf\s+/.*",
    r".*\bsudo\s+rm.*",
    r".*\b(curl|wget).*\|.*sh.*",
]
DEFAULT_WHITELISTED_PATHS = ["~/Documents", "~/Downloads", "/tmp", "/var/tmp"]
DEFAULT_BLACKLISTED_PATHS = ["/etc", "/usr", "/bin", "/sbin", "/boot", "/sys", "/proc"]


@dataclass
class CliConfig:
    cli_path: str = "claude"
    default_model: str = ""
    default_output_format: str = "text"
    api_key: str = ""
    api_url: str = ""
    dangerously_skip_permissions: bool = False
    verbose: bool = False
    working_directory: str = ""
    default_max_tokens: int = 0
    default_temperature: float = 0.0
    timeout: float = 300.0
    join_timeout: float = 5.0
    shutdown_timeout: float = 10.0
    default_environment: dict[str, str] = field(default_factory=dict)


@dataclass
class SessionConfig:
    directory: str = field(default_factory=tempfile.gettempdir)
    file_prefix: str = "claude-session"
    persist_history: bool = True
    persist_context: bool = True


@dataclass
class SecurityConfig:
    enabled: bool = True
    require_approval_for_all_commands: bool = False
    log_all_commands: bool = True
    whitelisted_commands: list[str] = field(default_factory=lambda: list(DEFAULT_WHITELISTED_COMMANDS))
    blacklisted_commands: list[str] = field(default_factory=lambda: list(DEFAULT_BLACKLISTED_COMMANDS))
    whitelisted_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_WHITELISTED_PATTERNS))
    blacklisted_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_BLACKLISTED_PATTERNS))
    whitelisted_paths: list[str] = field(default_factory=lambda: list(DEFAULT_WHITELISTED_PATHS))
    blacklisted_paths: list[str] = field(default_factory=lambda: list(DEFAULT_BLACKLISTED_PATHS))


@dataclass
class TmuxConfig:
    enabled: bool = True
    tmux_path: str = "tmux"
    default_session_prefix: str = "claude-"
    auto_cleanup_on_shutdown: bool = True
    command_timeout: float = 10.0
    exact_match: bool = True


@dataclass
class StorageConfig:
    enabled: bool = True
    db_path: str = "~/.claudecli-adapter/history.db"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.claudecli-adapter/adapter.log"


@dataclass
class AppConfig:
    cli: CliConfig = field(default_factory=CliConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    tmux: TmuxConfig = field(default_factory=TmuxConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def sections(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def default_options(self) -> ExecutionOptions:
        """Build the baseline ExecutionOptions from the [cli] section.

        Empty strings and zero values in the config mean "not configured".
        """
        cli = self.cli
        return ExecutionOptions(
            model=MODEL_ALIASES.get(cli.default_model, cli.default_model) or None,
            output_format=cli.default_output_format or None,
            api_key=cli.api_key or None,
            api_url=cli.api_url or None,
            dangerously_skip_permissions=cli.dangerously_skip_permissions or None,
            verbose=cli.verbose or None,
            working_directory=cli.working_directory or None,
            max_tokens=cli.default_max_tokens or None,
            temperature=cli.default_temperature or None,
            environment_variables=dict(cli.default_environment) or None,
        )


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def _update_section(section: Any, data: dict[str, Any]) -> None:
    for f in fields(section):
        if f.name in data:
            setattr(section, f.name, data[f.name])


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "rb") as f:
            data = tomllib.load(f)

        for name, section in config.sections().items():
            _update_section(section, data.get(name, {}))

    # Environment variable overrides
    if env_cli := os.environ.get("CLAUDECLI_PATH"):
        config.cli.cli_path = env_cli
    if env_model := os.environ.get("CLAUDECLI_DEFAULT_MODEL"):
        config.cli.default_model = env_model
    if env_api_key := os.environ.get("CLAUDECLI_API_KEY"):
        config.cli.api_key = env_api_key
    if env_api_url := os.environ.get("CLAUDECLI_API_URL"):
        config.cli.api_url = env_api_url
    if env_cwd := os.environ.get("CLAUDECLI_WORKING_DIRECTORY"):
        config.cli.working_directory = env_cwd
    if env_timeout := os.environ.get("CLAUDECLI_TIMEOUT"):
        config.cli.timeout = float(env_timeout)
    if env_session_dir := os.environ.get("CLAUDECLI_SESSION_DIRECTORY"):
        config.session.directory = env_session_dir
    if env_approval := os.environ.get("CLAUDECLI_REQUIRE_APPROVAL"):
        config.security.require_approval_for_all_commands = env_approval.lower() in ("true", "1", "yes")
    if env_tmux := os.environ.get("CLAUDECLI_TMUX_PATH"):
        config.tmux.tmux_path = env_tmux
    if env_db := os.environ.get("CLAUDECLI_DB_PATH"):
        config.storage.db_path = env_db
    if env_log_level := os.environ.get("CLAUDECLI_LOG_LEVEL"):
        config.logging.level = env_log_level

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {name: asdict(section) for name, section in config.sections().items()}

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)


# Global singleton
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or load the global config singleton."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global config (for testing)."""
    global _config
    _config = None
