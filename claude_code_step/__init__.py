"""
Claude Code step.

Runs the Claude Code CLI as one step of an automation pipeline:
- command_builder: parameters -> CLI arguments (with validation)
- process_runner: spawn, capture output, enforce timeout
- output_parser: CLI stdout -> structured result
- step: per-item orchestration with continue-on-fail
"""

from claude_code_step.command_builder import build_command
from claude_code_step.errors import ClaudeCodeError, ErrorKind
from claude_code_step.output_parser import OutputParser, parse_output
from claude_code_step.process_runner import ProcessRunner, run_process
from claude_code_step.step import ClaudeCodeStep
from claude_code_step.types import (
    AdditionalOptions,
    CommandBuildResult,
    ExecutionOptions,
    InvocationParameters,
    ParsedResult,
    ProcessOutcome,
    SessionMode,
    StepResult,
    SystemPromptMode,
    TokenUsage,
    ToolControl,
)

__all__ = [
    "build_command",
    "ClaudeCodeError",
    "ErrorKind",
    "OutputParser",
    "parse_output",
    "ProcessRunner",
    "run_process",
    "ClaudeCodeStep",
    "AdditionalOptions",
    "CommandBuildResult",
    "ExecutionOptions",
    "InvocationParameters",
    "ParsedResult",
    "ProcessOutcome",
    "SessionMode",
    "StepResult",
    "SystemPromptMode",
    "TokenUsage",
    "ToolControl",
]
