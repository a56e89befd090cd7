"""
Generation Service - Main facade over the configured text generator

This is the Generation Gateway used by the scenario pipeline: prompt in,
text plus token usage and finish reason out.
"""

from typing import Optional, Dict, Any
import logging

from llm_service.config import LLMServiceConfig, ServiceMode
from llm_service.provider import GenerationProvider, GenerationResponse
from llm_service.providers.openrouter_provider import OpenRouterProvider
from llm_service.providers.mock_provider import MockProvider
from llm_service.call_logger import CallLogger


logger = logging.getLogger(__name__)


class GenerationService:
    """
    Unified generation service coordinating provider and call logging.

    Provides:
    - Provider selection by service mode (mock for dry runs, OpenRouter otherwise)
    - Default generation parameters from configuration
    - Per-call JSONL logging and cumulative statistics

    Nothing is retried here; a failed call comes back as a
    ``success=False`` response.
    """

    def __init__(self, config: LLMServiceConfig, provider: Optional[GenerationProvider] = None):
        """
        Initialize the service with configuration.

        Args:
            config: LLMServiceConfig instance
            provider: Explicit provider, bypassing mode-based selection
        """
        self.config = config
        self.provider = provider or self._create_provider()
        self.call_logger = CallLogger(
            log_directory=config.logging.directory if config.logging.enabled else None,
            log_level=config.logging.level,
            truncate_prompts_chars=config.logging.truncate_prompts_chars,
            truncate_responses_chars=config.logging.truncate_responses_chars,
        )

        self.call_count = 0
        self.failure_count = 0

    @property
    def model_name(self) -> str:
        """Model identifier used for calls"""
        return self.config.defaults.model or self.provider.get_default_model()

    async def generate(self, prompt: str, call_type: str = "scenario_generation") -> GenerationResponse:
        """
        Send a compiled prompt to the generator.

        Args:
            prompt: Complete instruction payload
            call_type: Label recorded in the call log

        Returns:
            GenerationResponse with text, token usage and finish reason
        """
        defaults = self.config.defaults
        response = await self.provider.generate(
            prompt,
            model=self.model_name,
            temperature=defaults.temperature,
            max_tokens=defaults.max_tokens,
            top_p=defaults.top_p,
        )

        self.call_logger.log_call(
            call_type=call_type,
            model=response.model,
            parameters={
                "temperature": defaults.temperature,
                "max_tokens": defaults.max_tokens,
                "top_p": defaults.top_p,
            },
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            finish_reason=response.finish_reason,
            latency_ms=response.latency_ms,
            success=response.success,
            error=response.error,
            prompt=prompt,
            response=response.text,
        )

        self.call_count += 1
        if not response.success:
            self.failure_count += 1

        return response

    def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics"""
        return {
            "provider": self.provider.get_provider_name(),
            "mode": self.config.mode.value,
            "total_calls": self.call_count,
            "failed_calls": self.failure_count,
            "logger_stats": self.call_logger.get_statistics(),
        }

    async def aclose(self) -> None:
        """Release provider resources"""
        await self.provider.aclose()

    def _create_provider(self) -> GenerationProvider:
        """
        Create provider instance based on configuration.

        Returns:
            Provider instance conforming to GenerationProvider protocol
        """
        if self.config.mode == ServiceMode.DRY_RUN or self.config.provider == "mock":
            logger.info("Using mock generation provider (dry run)")
            return MockProvider(mode="dry_run")

        if not self.config.api_key:
            logger.warning("No API key configured for the OpenRouter provider")

        return OpenRouterProvider(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            default_model=self.config.defaults.model,
            timeout_seconds=self.config.performance.http_timeout_seconds,
        )

    @classmethod
    def from_hydra_config(cls, cfg: Any) -> "GenerationService":
        """
        Create service from Hydra configuration.

        Args:
            cfg: Hydra config object

        Returns:
            Configured GenerationService instance
        """
        return cls(LLMServiceConfig.from_hydra_config(cfg))
