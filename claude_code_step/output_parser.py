"""
Claude CLI Output Parser.

Parses stdout from `claude -p --output-format json`. The expected document is
a single result object:

    {"type": "result", "result": "...", "session_id": "...",
     "usage": {"input_tokens": 12, "output_tokens": 34}}

but other shapes are tolerated: "response"/"content" fields, bare JSON
strings, and message transcripts whose last assistant turn holds the answer.
Parsing never raises; problems are reported in ParsedResult.parse_error.
"""

import json
import logging
from typing import Any, List, Optional

from claude_code_step.types import ParsedResult, TokenUsage
from claude_code_step.utils.json_loader import loads_strict

logger = logging.getLogger(__name__)

EMPTY_OUTPUT_ERROR = "Empty output"

# Top-level string fields holding the answer, in priority order
RESULT_FIELDS = ("result", "response", "content")


class OutputParser:
    """Turns raw CLI stdout into a ParsedResult."""

    def parse(self, stdout: str) -> ParsedResult:
        """
        Parse Claude CLI output.

        Args:
            stdout: Raw text captured from the CLI's standard output

        Returns:
            ParsedResult. When stdout is not JSON, result and raw are the
            trimmed text and parse_error says why.
        """
        trimmed = (stdout or "").strip()
        if not trimmed:
            return ParsedResult(result="", raw=None, parse_error=EMPTY_OUTPUT_ERROR)

        try:
            parsed = loads_strict(trimmed)
        except (ValueError, RecursionError) as e:
            logger.debug(f"CLI output is not JSON, returning raw text: {e}")
            return ParsedResult(result=trimmed, raw=trimmed, parse_error=str(e))

        obj = parsed if isinstance(parsed, dict) else {}
        messages = obj.get("messages")

        return ParsedResult(
            result=self._extract_result(parsed),
            raw=parsed,
            session_id=self._extract_session_id(obj),
            messages=messages if isinstance(messages, list) else None,
            usage=self._extract_usage(obj),
        )

    def _extract_result(self, parsed: Any) -> str:
        if isinstance(parsed, dict):
            for key in RESULT_FIELDS:
                value = parsed.get(key)
                if isinstance(value, str):
                    return value
        elif isinstance(parsed, str):
            return parsed

        text = self._result_from_messages(parsed)
        if text:
            return text
        return json.dumps(parsed, ensure_ascii=False, separators=(",", ":"))

    def _result_from_messages(self, parsed: Any) -> Optional[str]:
        """Text of the last assistant message that has any."""
        if not isinstance(parsed, dict):
            return None
        messages = parsed.get("messages")
        if not isinstance(messages, list):
            return None

        for message in reversed(messages):
            if not isinstance(message, dict) or message.get("role") != "assistant":
                continue
            content = message.get("content")
            if isinstance(content, str):
                return content
            if isinstance(content, list):
                parts = _text_parts(content)
                if parts:
                    return "\n".join(parts)
        return None

    def _extract_session_id(self, obj: dict) -> Optional[str]:
        for key in ("session_id", "sessionId"):
            value = obj.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    def _extract_usage(self, obj: dict) -> Optional[TokenUsage]:
        usage = obj.get("usage")
        if not isinstance(usage, dict):
            return None
        return TokenUsage(
            input_tokens=_first_number(usage, "input_tokens", "inputTokens"),
            output_tokens=_first_number(usage, "output_tokens", "outputTokens"),
        )


def _text_parts(content: List[Any]) -> List[str]:
    parts = []
    for part in content:
        if isinstance(part, dict) and part.get("type") == "text":
            text = part.get("text")
            parts.append(text if isinstance(text, str) else "")
    return parts


def _first_number(data: dict, *keys: str) -> Optional[float]:
    for key in keys:
        value = data.get(key)
        # bool is an int subclass but never a token count
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None


_default_parser = OutputParser()


def parse_output(stdout: str) -> ParsedResult:
    """Parse CLI stdout with a shared OutputParser."""
    return _default_parser.parse(stdout)
