"""
Response Parsing - Turn raw generator output into a JSON document

Handles Markdown fence stripping, truncation detection, and parse
failures with enough diagnostic context to tell the two apart.
"""

from typing import Any, Optional
import json
import re


TRUNCATION_FINISH_REASONS = frozenset({"length", "max_tokens"})
DIAGNOSTIC_TAIL_CHARS = 200

_OPENING_FENCE = re.compile(r'^```(?:json)?[ \t]*\n?', re.IGNORECASE)
_CLOSING_FENCE = re.compile(r'\n?```\s*$')


class ParseError(Exception):
    """Exception raised when response parsing fails"""

    def __init__(
        self,
        message: str,
        length: int = 0,
        tail: str = "",
        finish_reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.length = length
        self.tail = tail
        self.finish_reason = finish_reason


class TruncatedOutput(ParseError):
    """The generator stopped before completing its response"""
    pass


class MalformedOutput(ParseError):
    """The generator response is not valid JSON"""
    pass


def is_truncated(finish_reason: Optional[str]) -> bool:
    """Check whether a provider finish reason signals a cut-off response"""
    if not finish_reason:
        return False
    return str(finish_reason).strip().lower() in TRUNCATION_FINISH_REASONS


class ResponseParser:
    """
    Parses generator responses into JSON documents.

    Supports:
    - Markdown code fences: ```json ... ``` or ``` ... ```
    - Truncation detection from the provider finish reason
    - Diagnostic errors carrying response length and trailing excerpt
    """

    def __init__(self, tail_chars: int = DIAGNOSTIC_TAIL_CHARS):
        self.tail_chars = tail_chars

    def strip_code_fences(self, text: str) -> str:
        """
        Remove a Markdown code fence wrapping the response, if present.

        Args:
            text: Raw generator output

        Returns:
            Text with the surrounding fence removed and whitespace trimmed
        """
        stripped = (text or "").strip()
        if stripped.startswith("```"):
            stripped = _OPENING_FENCE.sub("", stripped, count=1)
            stripped = _CLOSING_FENCE.sub("", stripped, count=1)
        return stripped.strip()

    def parse_generation(self, text: str, finish_reason: Optional[str] = None) -> Any:
        """
        Parse a generator response as JSON.

        A truncated response fails even when it happens to parse, since
        cut-off JSON can be syntactically valid but semantically incomplete.

        Args:
            text: Raw generator output
            finish_reason: Provider finish reason for the response

        Returns:
            The decoded JSON value

        Raises:
            TruncatedOutput: If the finish reason says the output was cut off
            MalformedOutput: If the output is not valid JSON
        """
        json_text = self.strip_code_fences(text)
        tail = json_text[-self.tail_chars:]

        if is_truncated(finish_reason):
            raise TruncatedOutput(
                f"Response truncated (finish reason: {finish_reason}, "
                f"length: {len(json_text)}). Increase the maximum output tokens.",
                length=len(json_text),
                tail=tail,
                finish_reason=finish_reason,
            )

        try:
            return json.loads(json_text)
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedOutput(
                f"JSON parse failed: {e}. Response may be truncated "
                f"(length: {len(json_text)}, finish: {finish_reason}).\n"
                f"Last {len(tail)} chars:\n{tail}",
                length=len(json_text),
                tail=tail,
                finish_reason=finish_reason,
            ) from e
