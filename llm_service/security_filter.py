"""
Security Filter - Input bleaching for user scenario prompts

Protects the compiled generator prompt against:
- Prompt injection phrases aimed at the structural rules
- Control characters and NUL bytes
- HTML/script fragments
- Excessive input lengths
"""

from typing import List, Optional
import re
import html


_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


class SecurityFilter:
    """
    Applies security controls to user text before it reaches the generator.

    The user prompt is embedded next to the structural rules, so anything
    that reads like a competing instruction is replaced rather than passed on.
    """

    def __init__(
        self,
        max_input_length: int = 4000,
        dangerous_patterns: Optional[List[str]] = None,
        strict_mode: bool = False,
        replacement: str = "[filtered]",
    ):
        """
        Initialize security filter.

        Args:
            max_input_length: Maximum allowed input length
            dangerous_patterns: List of regex patterns to neutralize
            strict_mode: If True, raise errors on violations; if False, sanitize
            replacement: Text substituted for a matched dangerous pattern
        """
        self.max_input_length = max_input_length
        self.strict_mode = strict_mode
        self.replacement = replacement

        self.dangerous_patterns = dangerous_patterns or [
            r"(?i)ignore.*previous.*instructions",
            r"(?i)forget.*system.*prompt",
            r"(?i)disregard.*rules",
        ]
        self.dangerous_patterns = list(self.dangerous_patterns) + [
            r"<script[^>]*>.*?</script>",
            r"javascript:",
        ]

        self.compiled_patterns = [
            re.compile(pattern, re.IGNORECASE | re.DOTALL)
            for pattern in self.dangerous_patterns
        ]
        self.filtered_count = 0

    @classmethod
    def from_config(cls, config) -> "SecurityFilter":
        """Build a filter from a SecurityConfig"""
        return cls(
            max_input_length=config.max_input_length,
            dangerous_patterns=list(config.dangerous_patterns),
        )

    def bleach_input(self, text: str) -> str:
        """
        Sanitize user input before it is compiled into a generator prompt.

        Args:
            text: Raw input text

        Returns:
            Sanitized text

        Raises:
            ValueError: If strict_mode=True and violations found
        """
        if not text:
            return text

        if len(text) > self.max_input_length:
            if self.strict_mode:
                raise ValueError(
                    f"Input exceeds maximum length: {len(text)} > {self.max_input_length}"
                )
            text = text[:self.max_input_length]

        text = _CONTROL_CHARS.sub('', text)

        for pattern in self.compiled_patterns:
            if pattern.search(text):
                if self.strict_mode:
                    raise ValueError(f"Input contains dangerous pattern: {pattern.pattern}")
                self.filtered_count += 1
                text = pattern.sub(self.replacement, text)

        text = self._remove_html_tags(text)
        return self._normalize_whitespace(text)

    def _remove_html_tags(self, text: str) -> str:
        """Remove HTML tags while preserving content"""
        text = html.unescape(text)
        return re.sub(r'<[^>]+>', '', text)

    def _normalize_whitespace(self, text: str) -> str:
        """Normalize excessive whitespace"""
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n\n+', '\n\n', text)
        return text.strip()

    def get_filter_statistics(self) -> dict:
        """Get statistics on filtering operations"""
        return {
            "max_input_length": self.max_input_length,
            "dangerous_patterns_count": len(self.dangerous_patterns),
            "filtered_count": self.filtered_count,
            "strict_mode": self.strict_mode,
        }
