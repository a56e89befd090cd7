"""
LLM Service - Generation Gateway for the HDDL scenario engine

This package provides a unified interface for text generation with:
- Multiple provider support (OpenRouter over HTTP, deterministic mock)
- Response parsing with truncation and malformed-output diagnostics
- Input bleaching for user prompts
- Structured call logging
- Configuration from Hydra or environment
"""

from llm_service.provider import GenerationProvider, GenerationResponse
from llm_service.service import GenerationService
from llm_service.config import LLMServiceConfig, ServiceMode, PricingConfig
from llm_service.response_parser import (
    ResponseParser,
    ParseError,
    TruncatedOutput,
    MalformedOutput,
)

__all__ = [
    "GenerationProvider",
    "GenerationResponse",
    "GenerationService",
    "LLMServiceConfig",
    "ServiceMode",
    "PricingConfig",
    "ResponseParser",
    "ParseError",
    "TruncatedOutput",
    "MalformedOutput",
]
