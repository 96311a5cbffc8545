"""
ProcessRunner: subprocess management for Claude CLI execution.

Spawns the CLI, captures stdout/stderr as it arrives, and enforces the
timeout. Every abnormal ending is raised as a ClaudeCodeError tagged with
its ErrorKind; a clean exit returns a ProcessOutcome.
"""

import asyncio
import contextlib
import logging
import os
import shlex
from pathlib import Path
from typing import List, Optional, Sequence

from claude_code_step.errors import ClaudeCodeError, ErrorKind
from claude_code_step.types import ExecutionOptions, ProcessOutcome

logger = logging.getLogger(__name__)

CLAUDE_COMMAND = "claude"

# Time allowed between SIGTERM and SIGKILL after a timeout
KILL_GRACE_PERIOD = 5.0

# POSIX shells exit with this status when the command does not exist
SHELL_COMMAND_NOT_FOUND = 127

CLI_NOT_FOUND_MESSAGE = (
    "Claude Code CLI not found. "
    "Please ensure Claude Code is installed and available in PATH."
)

_READ_CHUNK_SIZE = 8192


class ProcessRunner:
    """
    Runs the Claude CLI as a subprocess.

    Provides:
    - Environment overlay on top of the current process environment
    - Incremental stdout/stderr capture
    - Timeout with graceful then forceful termination
    - Classification of failures into ErrorKind values
    """

    def __init__(self, executable: str = CLAUDE_COMMAND, shell: bool = False):
        """
        Args:
            executable: Program to run (name on PATH or absolute path)
            shell: Hand the command line to /bin/sh instead of executing the
                argument vector directly. Arguments are joined with spaces
                unquoted, so shell metacharacters in them are interpreted.
        """
        self.executable = executable
        self.shell = shell

    async def run(
        self, args: Sequence[str], options: Optional[ExecutionOptions] = None
    ) -> ProcessOutcome:
        """
        Execute the CLI with the given arguments.

        Args:
            args: Arguments after the executable
            options: Working directory, timeout and environment overrides

        Returns:
            ProcessOutcome for a process that exited with code 0

        Raises:
            ClaudeCodeError: CLI_NOT_FOUND, TIMEOUT or EXECUTION_ERROR
        """
        options = options or ExecutionOptions()
        cwd = options.cwd or os.getcwd()
        env = {**os.environ, **options.env}
        command = [self.executable, *args]

        logger.debug(f"Executing: {shlex.join(command)}")
        logger.debug(f"CWD: {cwd}, timeout: {options.timeout}s, shell: {self.shell}")

        process = await self._spawn(command, cwd, env)

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout_chunks)),
            asyncio.create_task(_drain(process.stderr, stderr_chunks)),
        ]

        timed_out = False
        try:
            if options.timeout is not None and options.timeout > 0:
                try:
                    await asyncio.wait_for(process.wait(), timeout=options.timeout)
                except asyncio.TimeoutError:
                    timed_out = True
                    logger.warning(
                        f"Timeout ({options.timeout}s) exceeded, terminating process {process.pid}"
                    )
                    await self._terminate(process)
            else:
                await process.wait()
            # Output is complete only once both pipes are closed
            await asyncio.gather(*readers)
        except asyncio.CancelledError:
            logger.warning("Execution cancelled, killing subprocess")
            for reader in readers:
                reader.cancel()
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        stdout = _decode(stdout_chunks)
        stderr = _decode(stderr_chunks)
        exit_code = _normalize_exit_code(process.returncode)

        if timed_out:
            raise ClaudeCodeError(
                ErrorKind.TIMEOUT,
                f"Execution timed out after {options.timeout:g} seconds",
                partial_output=stdout,
                exit_code=exit_code,
                timed_out=True,
            )

        if self.shell and exit_code == SHELL_COMMAND_NOT_FOUND:
            logger.error(f"Shell could not find command: {self.executable}")
            raise ClaudeCodeError(ErrorKind.CLI_NOT_FOUND, CLI_NOT_FOUND_MESSAGE)

        if exit_code != 0:
            logger.error(f"Claude CLI exited with code {exit_code}")
            raise ClaudeCodeError(
                ErrorKind.EXECUTION_ERROR,
                f"Claude CLI exited with code {exit_code}: {stderr}",
                partial_output=stdout,
                exit_code=exit_code,
                stderr=stderr,
            )

        return ProcessOutcome(stdout=stdout, stderr=stderr, exit_code=0, timed_out=False)

    async def _spawn(
        self, command: List[str], cwd: str, env: dict
    ) -> asyncio.subprocess.Process:
        try:
            if self.shell:
                logger.warning(
                    "Spawning through the shell: arguments are not quoted and "
                    "shell metacharacters in them will be interpreted"
                )
                return await asyncio.create_subprocess_shell(
                    " ".join(command),
                    cwd=cwd,
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            # Raised for a missing executable and for a missing cwd alike
            if not Path(cwd).is_dir():
                logger.error(f"Working directory not found: {cwd}")
                message = f"Working directory not found: {cwd}"
                raise ClaudeCodeError(
                    ErrorKind.EXECUTION_ERROR,
                    f"Failed to start Claude CLI: {message}",
                    stderr=message,
                ) from e
            logger.error(f"Command not found: {self.executable}")
            raise ClaudeCodeError(ErrorKind.CLI_NOT_FOUND, CLI_NOT_FOUND_MESSAGE) from e
        except OSError as e:
            logger.error(f"Failed to start Claude CLI: {e}")
            raise ClaudeCodeError(
                ErrorKind.EXECUTION_ERROR,
                f"Failed to start Claude CLI: {e}",
                stderr=str(e),
            ) from e

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL if the process outlives the grace period."""
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_PERIOD)
        except asyncio.TimeoutError:
            logger.warning(
                f"Process {process.pid} ignored SIGTERM for {KILL_GRACE_PERIOD}s, killing"
            )
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()


async def _drain(stream: Optional[asyncio.StreamReader], chunks: List[bytes]) -> None:
    if stream is None:
        return
    while True:
        data = await stream.read(_READ_CHUNK_SIZE)
        if not data:
            return
        chunks.append(data)


def _decode(chunks: List[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


def _normalize_exit_code(returncode: Optional[int]) -> int:
    # Negative means killed by a signal: there is no exit status
    if returncode is None or returncode < 0:
        return 1
    return returncode


async def run_process(
    args: Sequence[str],
    options: Optional[ExecutionOptions] = None,
    executable: str = CLAUDE_COMMAND,
) -> ProcessOutcome:
    """Run the CLI once with a throwaway ProcessRunner."""
    return await ProcessRunner(executable=executable).run(args, options)
