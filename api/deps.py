"""
FastAPI dependency injection for the scenario API.

Settings come from the environment; the generator, queue and schema cache
are per-application components kept on ``app.state``.
"""

import os
from functools import lru_cache
from typing import List

from fastapi import Request

from llm_service import LLMServiceConfig
from scenario_engine import ScenarioGenerator, SchemaCache

from .generation_queue import SingleFlightQueue


# ============================================================================
# Configuration
# ============================================================================

class Settings:
    """API configuration settings."""

    def __init__(self):
        self.api_title: str = os.getenv(
            "API_TITLE",
            "HDDL Scenario API"
        )
        self.api_version: str = os.getenv(
            "API_VERSION",
            "0.1.0"
        )
        self.debug: bool = os.getenv(
            "DEBUG",
            "false"
        ).lower() == "true"
        self.cors_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]
        self.generation_timeout_seconds: float = float(os.getenv(
            "GENERATION_TIMEOUT_SECONDS",
            "120"
        ))
        self.prompt_min_length: int = int(os.getenv(
            "PROMPT_MIN_LENGTH",
            "10"
        ))
        self.prompt_max_length: int = int(os.getenv(
            "PROMPT_MAX_LENGTH",
            "1000"
        ))
        self.schema_path: str = os.getenv(
            "SCENARIO_SCHEMA_PATH",
            "schemas/hddl-scenario.schema.json"
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ============================================================================
# Application Components
# ============================================================================

def build_generator() -> ScenarioGenerator:
    """Create a scenario generator over the environment-configured gateway."""
    return ScenarioGenerator.from_config(LLMServiceConfig.from_env())


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_generator(request: Request) -> ScenarioGenerator:
    """Scenario generator, created on first use."""
    state = request.app.state
    if state.generator is None:
        state.generator = build_generator()
        state.owns_generator = True
    return state.generator


def get_queue(request: Request) -> SingleFlightQueue:
    """The application's single-flight generation queue."""
    return request.app.state.queue


def get_schema_cache(request: Request) -> SchemaCache:
    """The application's schema cache."""
    return request.app.state.schema_cache
