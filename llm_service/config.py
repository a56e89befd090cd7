"""
Configuration management for the generation service

Defines configuration structure and loading from Hydra config or environment.
"""

from typing import List, Any
from dataclasses import dataclass, field
from enum import Enum
import os


class ServiceMode(str, Enum):
    """Operating modes for the generation service"""
    DRY_RUN = "dry_run"  # Mock provider, no API calls
    PRODUCTION = "production"  # Real provider


@dataclass
class DefaultParametersConfig:
    """Default generation parameters"""
    model: str = "google/gemini-2.5-flash-lite"
    temperature: float = 0.1
    top_p: float = 0.95
    max_tokens: int = 16384


@dataclass
class PricingConfig:
    """Token prices in USD per one million tokens"""
    input_per_million: float = 0.50
    output_per_million: float = 3.00


@dataclass
class LoggingConfig:
    """Configuration for generation call logging"""
    enabled: bool = True
    level: str = "metadata"  # metadata, prompts, responses, full
    directory: str = "logs/generation_calls"
    truncate_prompts_chars: int = 500
    truncate_responses_chars: int = 1000


@dataclass
class SecurityConfig:
    """Configuration for user prompt bleaching"""
    max_input_length: int = 4000
    dangerous_patterns: List[str] = field(default_factory=lambda: [
        r"(?i)ignore.*previous.*instructions",
        r"(?i)forget.*system.*prompt",
        r"(?i)disregard.*rules",
    ])


@dataclass
class PerformanceConfig:
    """Configuration for request timing"""
    timeout_seconds: float = 120.0
    http_timeout_seconds: float = 110.0


@dataclass
class LLMServiceConfig:
    """Complete generation service configuration"""
    provider: str = "openrouter"  # openrouter, mock
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""

    mode: ServiceMode = ServiceMode.PRODUCTION
    defaults: DefaultParametersConfig = field(default_factory=DefaultParametersConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    @classmethod
    def from_hydra_config(cls, cfg: Any) -> "LLMServiceConfig":
        """
        Load configuration from a Hydra config object.

        Reads the ``llm_service`` section; missing keys keep their defaults.
        """
        if not hasattr(cfg, 'llm_service'):
            return cls.from_env()

        service_cfg = cfg.llm_service
        return cls(
            provider=service_cfg.get('provider', 'openrouter'),
            base_url=service_cfg.get('base_url', 'https://openrouter.ai/api/v1'),
            api_key=service_cfg.get('api_key', '') or '',
            mode=ServiceMode(service_cfg.get('mode', 'production')),
            defaults=DefaultParametersConfig(**service_cfg.get('defaults', {})),
            pricing=PricingConfig(**service_cfg.get('pricing', {})),
            logging=LoggingConfig(**service_cfg.get('logging', {})),
            security=SecurityConfig(**service_cfg.get('security', {})),
            performance=PerformanceConfig(**service_cfg.get('performance', {})),
        )

    @classmethod
    def from_env(cls) -> "LLMServiceConfig":
        """
        Load configuration from environment variables.

        Falls back to dry-run mode when no API key is available.
        """
        api_key = os.getenv("OPENROUTER_API_KEY", "")
        mode = os.getenv("LLM_MODE") or ("production" if api_key else "dry_run")

        defaults = DefaultParametersConfig()
        defaults.model = os.getenv("GENERATION_MODEL", defaults.model)
        defaults.max_tokens = int(os.getenv("GENERATION_MAX_TOKENS", str(defaults.max_tokens)))

        pricing = PricingConfig(
            input_per_million=float(os.getenv("PRICE_INPUT_PER_MILLION", "0.50")),
            output_per_million=float(os.getenv("PRICE_OUTPUT_PER_MILLION", "3.00")),
        )
        logging_cfg = LoggingConfig(
            enabled=os.getenv("GENERATION_CALL_LOG", "true").lower() == "true",
            level=os.getenv("GENERATION_CALL_LOG_LEVEL", "metadata"),
            directory=os.getenv("GENERATION_CALL_LOG_DIR", "logs/generation_calls"),
        )
        performance = PerformanceConfig(
            timeout_seconds=float(os.getenv("GENERATION_TIMEOUT_SECONDS", "120")),
        )

        return cls(
            provider=os.getenv("LLM_PROVIDER", "openrouter"),
            base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            api_key=api_key,
            mode=ServiceMode(mode),
            defaults=defaults,
            pricing=pricing,
            logging=logging_cfg,
            performance=performance,
        )
