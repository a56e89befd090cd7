"""Provider implementations for the generation service"""

from llm_service.providers.openrouter_provider import OpenRouterProvider
from llm_service.providers.mock_provider import MockProvider

__all__ = ["OpenRouterProvider", "MockProvider"]
