"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from claudecli_adapter import __version__
from claudecli_adapter.config import (
    CONFIG_FILE,
    MODEL_ALIASES,
    AppConfig,
    load_config,
    save_config,
)
from claudecli_adapter.core.executor import ProcessExecutor
from claudecli_adapter.errors import TmuxError
from claudecli_adapter.models import (
    ClaudeResponse,
    CommandExecution,
    ExecutionMode,
    ExecutionOptions,
    ResponseStatus,
    TmuxOptions,
)
from claudecli_adapter.security import ApprovalResult, DefaultSecurityPolicy, FileOperation
from claudecli_adapter.services.claude import ClaudeCliService
from claudecli_adapter.services.tmux import TmuxSessionManager
from claudecli_adapter.storage.database import close_db, get_recent_commands, init_db
from claudecli_adapter.utils.formatting import (
    format_decision,
    format_duration,
    format_response_body,
    format_response_header,
)
from claudecli_adapter.utils.system import check_claude_cli, check_directory, check_tmux

T = TypeVar("T")

app = typer.Typer(
    name="claudecli-adapter",
    help="Run Claude Code CLI prompts with session, security and tmux support.",
    add_completion=False,
)
tmux_app = typer.Typer(help="Manage detached tmux sessions.", add_completion=False)
app.add_typer(tmux_app, name="tmux")
console = Console()


def _setup_logging(cfg: AppConfig, verbose: bool = False) -> None:
    log_path = Path(cfg.logging.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(log_path)),
            logging.StreamHandler(),
        ],
    )


async def _run_prompt(
    cfg: AppConfig,
    prompt: str,
    options: ExecutionOptions,
    session_id: str | None,
    stream: bool,
) -> ClaudeResponse | None:
    if cfg.storage.enabled:
        await init_db(cfg.storage.db_path)
    try:
        async with ClaudeCliService(cfg) as service:
            session = service.create_session(session_id) if session_id else None
            if stream:

                def consumer(line: str) -> None:
                    console.print(line, markup=False, highlight=False)

                if session is not None:
                    await session.send_stream(prompt, consumer, options)
                else:
                    await service.execute_stream(prompt, consumer, options)
                return None
            if session is not None:
                return await session.send(prompt, options)
            return await service.execute(prompt, options)
    finally:
        await close_db()


@app.command()
def run(
    prompt: str = typer.Argument(..., help="Prompt to send to Claude Code"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id or alias (opus/sonnet/haiku)"),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="text, json or stream-json"),
    cwd: Optional[str] = typer.Option(None, "--cwd", help="Working directory for the CLI"),
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Session id (enables history/context files)"),
    stream: bool = typer.Option(False, "--stream", help="Print output lines as they arrive"),
    tmux: Optional[str] = typer.Option(None, "--tmux", help="Run detached inside a new tmux session with this name"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run a prompt through the Claude Code CLI."""
    cfg = load_config()
    _setup_logging(cfg, verbose)

    if timeout is not None:
        cfg.cli.timeout = timeout

    if cwd is not None:
        valid, resolved = check_directory(cwd)
        if not valid:
            console.print(f"[red]{resolved}[/red]")
            raise typer.Exit(1)
        cwd = resolved

    options = ExecutionOptions(
        model=MODEL_ALIASES.get(model, model) if model else None,
        output_format=output_format,
        working_directory=cwd,
    )
    if tmux is not None:
        options.execution_mode = ExecutionMode.TMUX
        options.tmux_options = TmuxOptions(session_name=f"{cfg.tmux.default_session_prefix}{tmux}", detached=True)

    response = asyncio.run(_run_prompt(cfg, prompt, options, session, stream))
    if response is None:
        return

    console.print(format_response_header(response))
    console.print(format_response_body(response), markup=False, highlight=False)
    if response.status != ResponseStatus.SUCCESS:
        raise typer.Exit(1)


@app.command()
def check(command: str = typer.Argument(..., help="Shell command to evaluate")) -> None:
    """Evaluate a command against the security policy."""
    cfg = load_config()
    policy = DefaultSecurityPolicy(cfg.security)
    result = policy.requires_approval(CommandExecution(command=command))
    console.print(format_decision(command, result))
    if result == ApprovalResult.DENIED:
        raise typer.Exit(1)


@app.command("check-path")
def check_path(
    path: str = typer.Argument(..., help="File path to evaluate"),
    op: FileOperation = typer.Option(FileOperation.READ, "--op", help="Operation type"),
) -> None:
    """Evaluate a file operation against the security policy."""
    cfg = load_config()
    policy = DefaultSecurityPolicy(cfg.security)
    if policy.is_file_operation_allowed(path, op):
        console.print(f"[green]ALLOW[/green] {op.value} {path}")
    else:
        console.print(f"[red]DENY[/red] {op.value} {path}")
        raise typer.Exit(1)


@app.command()
def history(
    lines: int = typer.Option(10, "--lines", "-n", help="Number of entries"),
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Only this session"),
) -> None:
    """Show recent executions from the history database."""
    cfg = load_config()
    db_path = Path(cfg.storage.db_path).expanduser()
    if not db_path.exists():
        console.print("[dim]No history recorded yet.[/dim]")
        return

    async def _load():
        await init_db(str(db_path))
        try:
            return await get_recent_commands(limit=lines, session_id=session)
        finally:
            await close_db()

    records = asyncio.run(_load())
    table = Table(title="History")
    table.add_column("When", style="dim")
    table.add_column("Session", style="cyan")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Command")
    for record in records:
        table.add_row(
            record.created_at,
            record.session_id[:12],
            record.status,
            format_duration(record.execution_time_ms),
            record.command,
        )
    console.print(table)


def _tmux_call(cfg: AppConfig, action: Callable[[TmuxSessionManager], Awaitable[T]]) -> T:
    async def _call() -> T:
        executor = ProcessExecutor(timeout=cfg.tmux.command_timeout)
        manager = TmuxSessionManager(
            executor,
            tmux_path=cfg.tmux.tmux_path,
            command_timeout=cfg.tmux.command_timeout,
            exact_match=cfg.tmux.exact_match,
        )
        try:
            return await action(manager)
        finally:
            await executor.shutdown()

    try:
        return asyncio.run(_call())
    except TmuxError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@tmux_app.command("list")
def tmux_list() -> None:
    """List tmux sessions."""
    cfg = load_config()
    names = _tmux_call(cfg, lambda manager: manager.list_sessions())
    if not names:
        console.print("[dim]No tmux sessions.[/dim]")
    for name in names:
        console.print(name)


@tmux_app.command("create")
def tmux_create(
    name: str = typer.Argument(..., help="Session name"),
    window: Optional[str] = typer.Option(None, "--window", "-w", help="Window name"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Pipe pane output to this file"),
) -> None:
    """Create a detached tmux session."""
    cfg = load_config()
    options = TmuxOptions(window_name=window, detached=True, log_file=log_file)
    session = _tmux_call(cfg, lambda manager: manager.create_session(name, options))
    console.print(f"[green]Tmux session ready:[/green] {session.name}")


@tmux_app.command("send")
def tmux_send(
    name: str = typer.Argument(..., help="Session name"),
    text: str = typer.Argument(..., help="Keys to send (followed by Enter)"),
) -> None:
    """Send a command line to a tmux session."""
    cfg = load_config()
    if not _tmux_call(cfg, lambda manager: manager.send_command(name, text)):
        console.print(f"[red]Failed to send to {name}[/red]")
        raise typer.Exit(1)


@tmux_app.command("capture")
def tmux_capture(name: str = typer.Argument(..., help="Session name")) -> None:
    """Print the visible pane of a tmux session."""
    cfg = load_config()
    console.print(_tmux_call(cfg, lambda manager: manager.capture_pane(name)), markup=False, highlight=False)


@tmux_app.command("kill")
def tmux_kill(name: str = typer.Argument(..., help="Session name")) -> None:
    """Kill a tmux session (no-op if it does not exist)."""
    cfg = load_config()
    _tmux_call(cfg, lambda manager: manager.kill_session(name))
    console.print(f"[green]Killed {name}[/green]")


def _coerce(current: Any, value: str) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, list):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(current, dict):
        raise ValueError("table values must be edited in the config file")
    return value


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., cli.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = load_config()

    if key is None:
        table = Table(title=f"Configuration ({CONFIG_FILE})")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")
        for section_name, section in cfg.sections().items():
            for attr, current in asdict(section).items():
                shown = str(current)
                if attr == "api_key" and current:
                    shown = current[:8] + "..."
                table.add_row(f"{section_name}.{attr}", shown)
        console.print(table)
        return

    if value is None:
        console.print("[red]Usage: claudecli-adapter config <key> <value>[/red]")
        raise typer.Exit(1)

    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., cli.timeout)[/red]")
        raise typer.Exit(1)

    section_name, attr = parts
    sections = cfg.sections()
    if section_name not in sections:
        console.print(f"[red]Unknown section: {section_name}[/red]")
        raise typer.Exit(1)

    section = sections[section_name]
    if not hasattr(section, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    try:
        typed_value = _coerce(getattr(section, attr), value)
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    setattr(section, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View adapter logs."""
    log_path = Path(load_config().logging.file).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text()
    log_lines = content.strip().split("\n")
    for line in log_lines[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    cfg = load_config()
    console.print(f"claudecli-adapter v{__version__}")

    installed, version_info = check_claude_cli(cfg.cli.cli_path)
    if installed:
        console.print(f"Claude Code CLI: {version_info}")
    else:
        console.print("Claude Code CLI: [yellow]not installed[/yellow]")

    tmux_ok, tmux_info = check_tmux(cfg.tmux.tmux_path)
    console.print(f"tmux: {tmux_info}" if tmux_ok else "tmux: [yellow]not installed[/yellow]")

    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
