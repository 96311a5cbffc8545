"""Error classification for Claude Code step failures."""

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorKind(Enum):
    """What went wrong during an invocation."""

    VALIDATION_ERROR = "VALIDATION_ERROR"  # Rejected before spawning, never retried
    CLI_NOT_FOUND = "CLI_NOT_FOUND"  # Executable missing from the environment
    TIMEOUT = "TIMEOUT"  # Exceeded the allotted time, partial output kept
    EXECUTION_ERROR = "EXECUTION_ERROR"  # Non-zero exit or spawn failure
    PARSE_ERROR = "PARSE_ERROR"  # Only ever reported as a note on a result


class ClaudeCodeError(Exception):
    """
    Failure of one invocation, tagged with its ErrorKind.

    Carries whatever diagnostics were available when it happened: partial
    stdout, stderr and the exit code.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        partial_output: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.partial_output = partial_output
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out
        self.item_index: Optional[int] = None

    @classmethod
    def validation(cls, errors: Iterable[str]) -> "ClaudeCodeError":
        """Aggregate every validation problem into one error."""
        return cls(
            ErrorKind.VALIDATION_ERROR,
            f"Parameter validation failed: {', '.join(errors)}",
        )

    def context(self) -> Dict[str, Any]:
        """Diagnostic fields that were set, keyed the way hosts expect them."""
        ctx: Dict[str, Any] = {"type": self.kind.value}
        if self.partial_output is not None:
            ctx["partialOutput"] = self.partial_output
        if self.exit_code is not None:
            ctx["exitCode"] = self.exit_code
        if self.stderr is not None:
            ctx["stderr"] = self.stderr
        if self.item_index is not None:
            ctx["itemIndex"] = self.item_index
        return ctx

    def __repr__(self) -> str:
        return f"ClaudeCodeError({self.kind.name}, {self.message!r})"
