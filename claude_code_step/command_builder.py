"""
Command Builder: translate InvocationParameters into Claude CLI arguments.

Pure and side-effect free. Validation problems are collected rather than
raised so the caller can report all of them at once.

Command format:
    claude -p --output-format json "<prompt>" [--model ...] [--resume <id>] ...
"""

import re
from typing import List

from claude_code_step.types import (
    MODEL_CUSTOM,
    TOOL_PRESET_ALL,
    AdditionalOptions,
    CommandBuildResult,
    InvocationParameters,
    SessionMode,
    SystemPromptMode,
    ToolControl,
)
from claude_code_step.utils.json_loader import loads_strict

# Non-interactive mode with a single JSON document on stdout
BASE_ARGS = ["-p", "--output-format", "json"]

# Runs of plain characters and "quoted spans", so "a b" stays one token
_EXTRA_FLAG_TOKEN = re.compile(r'(?:[^\s"]+|"[^"]*")+')


def build_command(params: InvocationParameters) -> CommandBuildResult:
    """
    Build the CLI argument list for one invocation.

    Args:
        params: Parameters for this invocation

    Returns:
        CommandBuildResult with the arguments (executable not included) and
        any validation errors. Arguments must not be executed when errors
        is non-empty.
    """
    args: List[str] = list(BASE_ARGS)
    errors: List[str] = []

    if not params.prompt or not params.prompt.strip():
        errors.append("Prompt is required")
    else:
        args.append(params.prompt)

    _add_model_args(args, params)
    _add_system_prompt_args(args, params)
    _add_session_args(args, params)
    _add_tool_args(args, params)

    if params.max_turns > 0:
        args.extend(["--max-turns", str(params.max_turns)])

    if params.custom_agents:
        if _is_json(params.custom_agents):
            args.extend(["--agents", params.custom_agents])
        else:
            errors.append("Custom Agents must be valid JSON")

    if params.mcp_config_path:
        args.extend(["--mcp-config", params.mcp_config_path])

    if params.permission_mode:
        args.extend(["--permission-mode", params.permission_mode])

    _add_additional_args(args, errors, params.additional_options)

    return CommandBuildResult(args=args, errors=errors)


def _add_model_args(args: List[str], params: InvocationParameters) -> None:
    if not params.model:
        return
    if params.model == MODEL_CUSTOM:
        if params.custom_model:
            args.extend(["--model", params.custom_model])
    else:
        args.extend(["--model", params.model])


def _add_system_prompt_args(args: List[str], params: InvocationParameters) -> None:
    if not params.system_prompt:
        return
    if params.system_prompt_mode is SystemPromptMode.APPEND:
        args.extend(["--append-system-prompt", params.system_prompt])
    elif params.system_prompt_mode is SystemPromptMode.REPLACE:
        args.extend(["--system-prompt", params.system_prompt])


def _add_session_args(args: List[str], params: InvocationParameters) -> None:
    if params.session_mode is SessionMode.CONTINUE:
        args.append("-c")
    elif params.session_mode is SessionMode.RESUME and params.session_id:
        flag = "--fork-session" if params.fork_session else "--resume"
        args.extend([flag, params.session_id])


def _add_tool_args(args: List[str], params: InvocationParameters) -> None:
    mode = params.tool_control
    if mode is ToolControl.PRESET:
        if params.tool_preset and params.tool_preset != TOOL_PRESET_ALL:
            args.extend(["--tools", params.tool_preset])
    elif mode is ToolControl.CUSTOM:
        if params.tools:
            args.extend(["--tools", params.tools])
    elif mode is ToolControl.ALLOW:
        _extend_per_item(args, "--allowedTools", params.allowed_tools)
    elif mode is ToolControl.DENY:
        _extend_per_item(args, "--disallowedTools", params.disallowed_tools)
    elif mode is ToolControl.NONE:
        args.extend(["--tools", "none"])


def _add_additional_args(
    args: List[str], errors: List[str], options: AdditionalOptions
) -> None:
    if options.verbose:
        args.append("--verbose")

    if options.debug:
        args.extend(["--debug", options.debug])

    if options.fallback_model:
        args.extend(["--fallback-model", options.fallback_model])

    if options.json_schema:
        if _is_json(options.json_schema):
            args.extend(["--json-schema", options.json_schema])
        else:
            errors.append("JSON Schema must be valid JSON")

    _extend_per_item(args, "--betas", options.betas)
    _extend_per_item(args, "--add-dir", options.additional_dirs)

    if options.skip_permissions:
        args.append("--dangerously-skip-permissions")

    if options.extra_flags:
        args.extend(parse_extra_flags(options.extra_flags))


def _extend_per_item(args: List[str], flag: str, csv: str) -> None:
    """Emit flag once per non-empty comma-separated entry."""
    for item in split_csv(csv):
        args.extend([flag, item])


def split_csv(value: str) -> List[str]:
    """Split on commas, trim entries and drop the empty ones."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_extra_flags(extra_flags: str) -> List[str]:
    """
    Tokenize a free-form flag string.

    Whitespace separates tokens except inside double quotes. A token that is
    entirely wrapped in double quotes loses them:

        '--foo "bar baz" x="1 2"'  ->  ['--foo', 'bar baz', 'x="1 2"']
    """
    tokens = []
    for match in _EXTRA_FLAG_TOKEN.finditer(extra_flags):
        token = match.group(0)
        if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
            token = token[1:-1]
        tokens.append(token)
    return tokens


def _is_json(text: str) -> bool:
    try:
        loads_strict(text)
    except ValueError:
        return False
    return True
