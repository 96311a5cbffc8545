"""
ClaudeCodeStep: run the Claude CLI as one step of an automation pipeline.

For each item: build arguments -> run the CLI -> parse its output. Items are
processed one at a time; a failing item either aborts the batch or is
recorded as {"error": message} when continue_on_fail is set.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from claude_code_step.command_builder import build_command
from claude_code_step.config import Settings, get_settings
from claude_code_step.errors import ClaudeCodeError
from claude_code_step.output_parser import OutputParser
from claude_code_step.process_runner import ProcessRunner
from claude_code_step.types import (
    ExecutionOptions,
    InvocationParameters,
    StepResult,
)

logger = logging.getLogger(__name__)

# Host keys that configure the process rather than the CLI arguments
WORKING_DIRECTORY_KEYS = ("workingDirectory", "working_directory")


class ClaudeCodeStep:
    """
    Orchestrates build, run and parse for pipeline items.

    Holds no per-invocation state, so one instance can serve many batches.
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        parser: Optional[OutputParser] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._runner = runner or ProcessRunner(
            executable=self._settings.runner.executable,
            shell=self._settings.runner.shell,
        )
        self._parser = parser or OutputParser()

    async def execute(
        self,
        params: InvocationParameters,
        working_directory: Optional[str] = None,
    ) -> StepResult:
        """
        Run one invocation.

        Args:
            params: Invocation parameters
            working_directory: Directory to run the CLI in (default: cwd)

        Returns:
            StepResult for the host

        Raises:
            ClaudeCodeError: VALIDATION_ERROR before spawning, or whatever
                the runner raised
        """
        build = build_command(params)
        if build.errors:
            logger.warning(f"Parameter validation failed: {build.errors}")
            raise ClaudeCodeError.validation(build.errors)

        timeout = params.additional_options.timeout or self._settings.runner.default_timeout
        options = ExecutionOptions(
            cwd=working_directory or None,
            timeout=timeout,
            env=dict(self._settings.runner.env),
        )

        logger.info(
            f"Running Claude CLI: model={params.model or 'default'}, "
            f"session_mode={params.session_mode.value}, timeout={timeout}s"
        )
        outcome = await self._runner.run(build.args, options)

        parsed = self._parser.parse(outcome.stdout)
        if parsed.parse_error:
            logger.info(f"CLI output returned as raw text: {parsed.parse_error}")
        logger.debug(f"Claude CLI finished, session_id={parsed.session_id}")

        return StepResult.from_parsed(parsed, exit_code=outcome.exit_code)

    async def execute_item(self, item: Mapping[str, Any]) -> StepResult:
        """Run one invocation from a flat host parameter mapping."""
        params = parameters_from_item(item)
        working_directory = None
        for key in WORKING_DIRECTORY_KEYS:
            if item.get(key):
                working_directory = str(item[key])
                break
        return await self.execute(params, working_directory=working_directory)

    async def execute_batch(
        self,
        items: Iterable[Mapping[str, Any]],
        continue_on_fail: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Run every item in order.

        Args:
            items: Flat host parameter mappings
            continue_on_fail: Record failures as {"error": message} instead
                of aborting

        Returns:
            One record per item, in input order

        Raises:
            ClaudeCodeError: First failure, with item_index set, when
                continue_on_fail is False
        """
        records: List[Dict[str, Any]] = []
        for index, item in enumerate(items):
            try:
                result = await self.execute_item(item)
            except ClaudeCodeError as e:
                if not continue_on_fail:
                    e.item_index = index
                    raise
                logger.warning(f"Item {index} failed ({e.kind.name}): {e.message}")
                records.append({"error": e.message})
                continue
            records.append(result.to_record())
        return records


def parameters_from_item(item: Mapping[str, Any]) -> InvocationParameters:
    """
    Validate a host parameter mapping.

    Raises:
        ClaudeCodeError: VALIDATION_ERROR listing every invalid field
    """
    try:
        return InvocationParameters.model_validate(dict(item))
    except ValidationError as e:
        raise ClaudeCodeError.validation(_describe_errors(e)) from e


def _describe_errors(error: ValidationError) -> List[str]:
    described = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "parameters"
        described.append(f"{location}: {detail['msg']}")
    return described
