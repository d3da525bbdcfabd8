"""Map ExecutionOptions onto a claude CLI argument vector."""

from __future__ import annotations

from claudecli_adapter.models import CommandInvocation, ExecutionMode, ExecutionOptions, TmuxOptions


class CommandBuilder:
    """Build argv lists for the claude CLI."""

    def __init__(self, cli_path: str = "claude", tmux_path: str = "tmux") -> None:
        self.cli_path = cli_path
        self.tmux_path = tmux_path

    def build(self, prompt: str | None, options: ExecutionOptions | None = None) -> list[str]:
        options = options or ExecutionOptions()
        cmd: list[str] = []

        if options.execution_mode == ExecutionMode.TMUX:
            cmd.extend(self._tmux_prefix(options.tmux_options or TmuxOptions()))

        cmd.append(self.cli_path)

        if options.model is not None:
            cmd.extend(["--model", options.model])
        if options.output_format is not None:
            cmd.extend(["--output-format", options.output_format])
        if options.api_key is not None:
            cmd.extend(["--api-key", options.api_key])
        if options.api_url is not None:
            cmd.extend(["--api-url", options.api_url])
        if options.dangerously_skip_permissions:
            cmd.append("--dangerously-skip-permissions")
        if options.continue_mode:
            cmd.append("--continue")
        if options.verbose:
            cmd.append("--verbose")
        if options.context_file is not None:
            cmd.extend(["--context", options.context_file])
        if options.history_file is not None:
            cmd.extend(["--history", options.history_file])
        if options.output_file is not None:
            cmd.extend(["--output", options.output_file])
        if options.max_tokens is not None:
            cmd.extend(["--max-tokens", str(options.max_tokens)])
        if options.temperature is not None:
            cmd.extend(["--temperature", str(options.temperature)])
        if options.additional_flags:
            cmd.extend(options.additional_flags)

        # Everything after "--" is the prompt, even if it starts with a dash
        if prompt:
            cmd.extend(["--", prompt])

        return cmd

    def build_invocation(self, prompt: str | None, options: ExecutionOptions | None = None) -> CommandInvocation:
        options = options or ExecutionOptions()
        return CommandInvocation(
            argv=tuple(self.build(prompt, options)),
            mode=options.execution_mode or ExecutionMode.DIRECT,
            working_directory=options.working_directory,
            environment=dict(options.environment_variables) if options.environment_variables else None,
        )

    def _tmux_prefix(self, tmux: TmuxOptions) -> list[str]:
        prefix = [self.tmux_path, "new-session"]
        if tmux.session_name is not None:
            prefix.extend(["-s", tmux.session_name])
        if tmux.window_name is not None:
            prefix.extend(["-n", tmux.window_name])
        if tmux.detached:
            prefix.append("-d")
        prefix.append("--")
        return prefix
