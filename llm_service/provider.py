"""
Provider Protocol - Abstract interface for scenario text generators

Defines the contract that all generation backends must satisfy.
"""

from typing import Protocol, Dict, Any, Optional
from dataclasses import dataclass


@dataclass
class GenerationResponse:
    """Standardized generator response structure"""
    text: str
    model: str
    tokens_in: int
    tokens_out: int
    finish_reason: Optional[str]
    latency_ms: float
    success: bool = True
    error: Optional[str] = None
    raw_response: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def total_tokens(self) -> int:
        return self.tokens_in + self.tokens_out


class GenerationProvider(Protocol):
    """
    Protocol defining the interface for generation providers.

    Any provider (OpenRouter, mock) must implement these methods.
    Providers report failures through ``success=False`` responses
    rather than raising.
    """

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 16384,
        top_p: float = 0.95,
    ) -> GenerationResponse:
        """
        Generate text for a single prompt.

        Args:
            prompt: Complete instruction payload
            model: Model identifier (uses default if None)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            top_p: Nucleus sampling parameter

        Returns:
            GenerationResponse with text, token usage and finish reason
        """
        ...

    def get_provider_name(self) -> str:
        """Get the name of this provider (e.g., 'openrouter', 'mock_dry_run')"""
        ...

    def get_default_model(self) -> str:
        """Get the default model identifier for this provider"""
        ...

    async def aclose(self) -> None:
        """Release network resources held by the provider"""
        ...
