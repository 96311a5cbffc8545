"""
Shared types for the Claude Code step.

Parameters coming from the host are pydantic models so that flat host
parameter bags (camelCase keys) validate into immutable objects. Results
produced by the runner and parser are plain dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SystemPromptMode(str, Enum):
    NONE = "none"
    APPEND = "append"
    REPLACE = "replace"


class SessionMode(str, Enum):
    NEW = "new"
    CONTINUE = "continue"
    RESUME = "resume"


class ToolControl(str, Enum):
    DEFAULT = "default"
    PRESET = "preset"
    CUSTOM = "custom"
    ALLOW = "allow"
    DENY = "deny"
    NONE = "none"


# Empty selection lets the CLI pick its own model
MODEL_DEFAULT = ""
MODEL_CUSTOM = "custom"
KNOWN_MODELS = ("haiku", "opus", "sonnet")

# "default" means every tool, so nothing is emitted for it
TOOL_PRESET_ALL = "default"
TOOL_PRESETS: Dict[str, str] = {
    "All Tools": TOOL_PRESET_ALL,
    "Code Edit": "Read,Edit,Write,Glob,Grep",
    "Code Review": "Read,Glob,Grep,WebSearch,WebFetch",
    "Full Development": "Read,Edit,Write,Bash,Glob,Grep",
    "Read Only": "Read,Glob,Grep",
}


class _HostModel(BaseModel):
    """Base for models filled from host parameter bags."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Hosts send null for unset fields; fall back to the defaults.
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data


class AdditionalOptions(_HostModel):
    """Less common CLI options grouped the way the host groups them."""

    timeout: Optional[float] = Field(
        None, description="Execution timeout in seconds (unset uses the default)"
    )
    verbose: bool = False
    debug: str = Field("", description="Debug category filter")
    fallback_model: str = ""
    json_schema: str = Field("", description="JSON schema text for structured output")
    betas: str = Field("", description="Comma-separated beta feature names")
    additional_dirs: str = Field("", description="Comma-separated extra directories")
    skip_permissions: bool = False
    extra_flags: str = Field("", description="Raw flags appended verbatim")


class InvocationParameters(_HostModel):
    """Everything the user configured for one invocation of the CLI."""

    prompt: str = ""
    model: str = MODEL_DEFAULT
    custom_model: str = ""
    system_prompt_mode: SystemPromptMode = SystemPromptMode.NONE
    system_prompt: str = ""
    session_mode: SessionMode = SessionMode.NEW
    session_id: str = ""
    fork_session: bool = False
    tool_control: ToolControl = ToolControl.DEFAULT
    tool_preset: str = ""
    tools: str = ""
    allowed_tools: str = ""
    disallowed_tools: str = ""
    max_turns: int = 0
    custom_agents: str = ""
    mcp_config_path: str = ""
    permission_mode: str = ""
    additional_options: AdditionalOptions = Field(default_factory=AdditionalOptions)


@dataclass
class CommandBuildResult:
    """Argument list plus every validation error found while building it."""

    args: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ExecutionOptions:
    """Per-invocation process settings."""

    cwd: Optional[str] = None
    timeout: Optional[float] = None
    """Seconds before the process is terminated; None or <= 0 disables it."""
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessOutcome:
    """Captured result of a CLI process that exited cleanly."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False


@dataclass
class TokenUsage:
    input_tokens: Optional[float] = None
    output_tokens: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """camelCase counts, leaving out any the CLI did not report."""
        counts = {"inputTokens": self.input_tokens, "outputTokens": self.output_tokens}
        return {k: v for k, v in counts.items() if v is not None}


@dataclass
class ParsedResult:
    """
    Best-effort structure extracted from the CLI's stdout.

    raw holds the decoded JSON value, or the trimmed text when decoding failed.
    """

    result: str
    raw: Any = None
    session_id: Optional[str] = None
    messages: Optional[List[Any]] = None
    usage: Optional[TokenUsage] = None
    parse_error: Optional[str] = None


@dataclass
class StepResult:
    """Success record handed back to the host for one item."""

    result: str
    exit_code: int
    raw: Any = None
    session_id: Optional[str] = None
    usage: Optional[TokenUsage] = None
    parse_error: Optional[str] = None

    @classmethod
    def from_parsed(cls, parsed: ParsedResult, exit_code: int) -> "StepResult":
        return cls(
            result=parsed.result,
            exit_code=exit_code,
            raw=parsed.raw,
            session_id=parsed.session_id,
            usage=parsed.usage,
            parse_error=parsed.parse_error,
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"result": self.result}
        if self.session_id is not None:
            record["sessionId"] = self.session_id
        if self.usage is not None:
            record["usage"] = self.usage.to_dict()
        record["exitCode"] = self.exit_code
        record["raw"] = self.raw
        if self.parse_error:
            record["parseError"] = self.parse_error
        return record
