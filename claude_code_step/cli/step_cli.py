"""Command-line shell for running the Claude Code step outside a host."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from claude_code_step.command_builder import build_command
from claude_code_step.errors import ClaudeCodeError
from claude_code_step.logging import setup_logging
from claude_code_step.step import ClaudeCodeStep, parameters_from_item
from claude_code_step.types import (
    KNOWN_MODELS,
    MODEL_CUSTOM,
    TOOL_PRESETS,
    SessionMode,
    SystemPromptMode,
    ToolControl,
)

app = typer.Typer(help="Run the Claude Code CLI as a pipeline step")


def _item_from_options(**options: Any) -> Dict[str, Any]:
    """Host-shaped parameter mapping from CLI options (unset ones dropped)."""
    additional_keys = {
        "timeout",
        "verbose",
        "debug",
        "fallback_model",
        "json_schema",
        "betas",
        "additional_dirs",
        "skip_permissions",
        "extra_flags",
    }
    item: Dict[str, Any] = {}
    additional: Dict[str, Any] = {}
    for key, value in options.items():
        if value is None:
            continue
        if isinstance(value, (SessionMode, SystemPromptMode, ToolControl)):
            value = value.value
        if key in additional_keys:
            additional[key] = value
        else:
            item[key] = value
    item["additional_options"] = additional
    return item


def _emit(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _fail(error: ClaudeCodeError) -> None:
    typer.echo(f"[{error.kind.name}] {error.message}", err=True)
    context = error.context()
    if len(context) > 1:
        typer.echo(json.dumps(context, indent=2, ensure_ascii=False), err=True)
    raise typer.Exit(code=1)


def _load_items(path: Path) -> List[Dict[str, Any]]:
    text = path.read_text()
    # JSON is a subset of YAML, so one loader covers both
    data = yaml.safe_load(text)
    if isinstance(data, dict):
        data = data.get("items", [data])
    if not isinstance(data, list) or not all(isinstance(i, dict) for i in data):
        raise typer.BadParameter(
            f"{path} must contain a list of parameter mappings", param_hint="FILE"
        )
    return data


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    setup_logging()


@app.command()
def run(
    prompt: str = typer.Option(..., "--prompt", "-p", help="Prompt to send"),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        help=f"{', '.join(KNOWN_MODELS)}, any other model name, or '{MODEL_CUSTOM}'",
    ),
    custom_model: Optional[str] = typer.Option(
        None, "--custom-model", help="Model name used when --model custom"
    ),
    system_prompt_mode: Optional[SystemPromptMode] = typer.Option(
        None, "--system-prompt-mode"
    ),
    system_prompt: Optional[str] = typer.Option(None, "--system-prompt"),
    session_mode: Optional[SessionMode] = typer.Option(None, "--session-mode"),
    session_id: Optional[str] = typer.Option(None, "--session-id"),
    fork_session: Optional[bool] = typer.Option(None, "--fork-session"),
    tool_control: Optional[ToolControl] = typer.Option(None, "--tool-control"),
    tool_preset: Optional[str] = typer.Option(
        None,
        "--tool-preset",
        help=f"Preset name ({', '.join(TOOL_PRESETS)}) or a tool list",
    ),
    tools: Optional[str] = typer.Option(None, "--tools"),
    allowed_tools: Optional[str] = typer.Option(None, "--allowed-tools"),
    disallowed_tools: Optional[str] = typer.Option(None, "--disallowed-tools"),
    max_turns: Optional[int] = typer.Option(None, "--max-turns", min=0),
    custom_agents: Optional[str] = typer.Option(
        None, "--agents", help="Custom agent definitions (JSON)"
    ),
    mcp_config_path: Optional[str] = typer.Option(None, "--mcp-config"),
    permission_mode: Optional[str] = typer.Option(None, "--permission-mode"),
    working_directory: Optional[str] = typer.Option(None, "--cwd"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds"),
    verbose: Optional[bool] = typer.Option(None, "--verbose"),
    debug: Optional[str] = typer.Option(None, "--debug"),
    fallback_model: Optional[str] = typer.Option(None, "--fallback-model"),
    json_schema: Optional[str] = typer.Option(None, "--json-schema"),
    betas: Optional[str] = typer.Option(None, "--betas"),
    additional_dirs: Optional[str] = typer.Option(None, "--add-dir"),
    skip_permissions: Optional[bool] = typer.Option(None, "--skip-permissions"),
    extra_flags: Optional[str] = typer.Option(None, "--extra-flags"),
):
    """Run a single invocation and print its result record as JSON."""
    if tool_preset is not None:
        tool_preset = TOOL_PRESETS.get(tool_preset, tool_preset)
    item = _item_from_options(**locals())
    step = ClaudeCodeStep()
    try:
        result = asyncio.run(step.execute_item(item))
    except ClaudeCodeError as e:
        _fail(e)
    _emit(result.to_record())


@app.command()
def batch(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="YAML or JSON list of items"
    ),
    continue_on_fail: bool = typer.Option(
        False, "--continue-on-fail", help="Record failures and keep going"
    ),
):
    """Run every item in FILE sequentially and print the records as JSON."""
    items = _load_items(file)
    step = ClaudeCodeStep()
    try:
        records = asyncio.run(step.execute_batch(items, continue_on_fail=continue_on_fail))
    except ClaudeCodeError as e:
        _fail(e)
    _emit(records)


@app.command()
def args(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="YAML or JSON parameter mapping"
    ),
):
    """Print the CLI arguments an item would produce, without running it."""
    data = yaml.safe_load(file.read_text())
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{file} must contain a mapping", param_hint="FILE")
    try:
        params = parameters_from_item(data)
    except ClaudeCodeError as e:
        _fail(e)
    build = build_command(params)
    if build.errors:
        _fail(ClaudeCodeError.validation(build.errors))
    _emit(build.args)


def cli() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    sys.exit(cli())
