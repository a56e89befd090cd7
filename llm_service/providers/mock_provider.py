"""
Mock Provider - Deterministic generator for dry runs and tests

Provides:
- Dry-run mode: recovers the skeleton embedded in the prompt and fills
  every placeholder with a readable, length-compliant value
- Failure simulation: truncated, fenced, malformed or reordered output
- Fixed responses for reproducing a captured generator reply
"""

from typing import Optional, Any
import asyncio
import json
import re
import time

from llm_service.provider import GenerationResponse


_PLACEHOLDER = re.compile(r'^[A-Z0-9_]+$')


def fill_placeholder(token: str) -> str:
    """Turn ``AGENT_NAME_1`` into ``Agent Name 1``"""
    return " ".join(part.capitalize() for part in token.split("_") if part)


def fill_placeholders(value: Any) -> Any:
    """Recursively replace every placeholder-looking string in a JSON tree"""
    if isinstance(value, str):
        return fill_placeholder(value) if _PLACEHOLDER.match(value) else value
    if isinstance(value, list):
        return [fill_placeholders(item) for item in value]
    if isinstance(value, dict):
        return {key: fill_placeholders(item) for key, item in value.items()}
    return value


def extract_skeleton(prompt: str) -> Optional[dict]:
    """Find the compact single-line JSON skeleton inside a compiled prompt"""
    for line in prompt.splitlines():
        candidate = line.strip()
        if candidate.startswith("{") and candidate.endswith("}"):
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed
    return None


class MockProvider:
    """
    Test provider for dry-run mode.

    Echoes the prompt's skeleton with placeholders filled, optionally
    degrading the reply to exercise parser and merge failure paths.
    """

    def __init__(
        self,
        mode: str = "dry_run",
        finish_reason: str = "stop",
        wrap_in_fence: bool = False,
        truncate: bool = False,
        malformed: bool = False,
        reverse_collections: bool = False,
        fixed_response: Optional[str] = None,
        latency_seconds: float = 0.0,
    ):
        """
        Initialize mock provider.

        Args:
            mode: Operating mode label
            finish_reason: Finish reason reported for normal replies
            wrap_in_fence: Wrap the JSON reply in a Markdown code fence
            truncate: Cut the reply in half and report finish reason 'length'
            malformed: Cut the reply in half but report a normal finish reason
            reverse_collections: Reverse envelopes, agents and events arrays
            fixed_response: Return this text verbatim instead of a filled skeleton
            latency_seconds: Simulated generation delay
        """
        self.mode = mode
        self.finish_reason = finish_reason
        self.wrap_in_fence = wrap_in_fence
        self.truncate = truncate
        self.malformed = malformed
        self.reverse_collections = reverse_collections
        self.fixed_response = fixed_response
        self.latency_seconds = latency_seconds
        self.prompts: list[str] = []

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 16384,
        top_p: float = 0.95,
    ) -> GenerationResponse:
        """Generate a deterministic reply for the prompt"""
        start_time = time.time()
        self.prompts.append(prompt)

        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        text = self.fixed_response if self.fixed_response is not None else self._render(prompt)
        finish_reason = self.finish_reason

        if self.truncate or self.malformed:
            text = text[: len(text) // 2]
        if self.truncate:
            finish_reason = "length"
        if self.wrap_in_fence:
            text = f"```json\n{text}\n```"

        return GenerationResponse(
            text=text,
            model=model or self.get_default_model(),
            tokens_in=len(prompt.split()),
            tokens_out=len(text.split()),
            finish_reason=finish_reason,
            latency_ms=(time.time() - start_time) * 1000,
            success=True,
            metadata={"mode": self.mode},
        )

    def get_provider_name(self) -> str:
        """Get provider name"""
        return f"mock_{self.mode}"

    def get_default_model(self) -> str:
        """Get default model"""
        return "mock-model"

    async def aclose(self) -> None:
        """Nothing to release"""
        return None

    def _render(self, prompt: str) -> str:
        skeleton = extract_skeleton(prompt)
        if skeleton is None:
            return "{}"

        filled = fill_placeholders(skeleton)
        if self.reverse_collections:
            filled["envelopes"] = list(reversed(filled.get("envelopes", [])))
            filled["events"] = list(reversed(filled.get("events", [])))
            for fleet in filled.get("fleets", []):
                fleet["agents"] = list(reversed(fleet.get("agents", [])))
        return json.dumps(filled)
