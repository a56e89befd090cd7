#!/usr/bin/env python3
"""
conftest.py - Shared pytest configuration and fixtures for the HDDL scenario engine

Provides:
- Marker registration and auto-marking by test directory
- Skipping of real-LLM tests when no API key is configured
- Skeleton, candidate and merged-scenario fixtures
- Dry-run generator fixtures over the mock provider
"""
import copy
import os
from pathlib import Path
from typing import Optional

import pytest
from dotenv import load_dotenv

from llm_service.config import LLMServiceConfig, LoggingConfig, ServiceMode
from llm_service.providers.mock_provider import MockProvider, fill_placeholders
from scenario_engine import (
    ScenarioGenerator,
    build_skeleton,
    merge_scenario,
    reconcile_envelope_state,
)

# Load environment variables
load_dotenv()

FIXED_EPOCH_SECONDS = 1_767_225_600.0


def pytest_addoption(parser):
    """Add custom command line options"""
    parser.addoption(
        "--skip-llm",
        action="store_true",
        default=False,
        help="Skip tests that make real LLM API calls"
    )


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (multiple components)")
    config.addinivalue_line("markers", "llm: Tests making real LLM API calls")
    config.addinivalue_line("markers", "temporal: Temporal causality and chronology")
    config.addinivalue_line("markers", "validation: Scenario invariant checks")


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """
    Auto-mark tests by location and skip real-LLM tests without a key.
    """
    has_key = bool(os.getenv("OPENROUTER_API_KEY"))
    skip_llm = config.getoption("--skip-llm") or not has_key

    for item in items:
        parts = Path(str(item.fspath)).parts
        if "unit" in parts and not item.get_closest_marker("unit"):
            item.add_marker(pytest.mark.unit)
        if "integration" in parts and not item.get_closest_marker("integration"):
            item.add_marker(pytest.mark.integration)

        if item.get_closest_marker("llm") and skip_llm:
            item.add_marker(pytest.mark.skip(reason="Real LLM tests need OPENROUTER_API_KEY"))


# ============================================================================
# Shared Fixtures - Scenario Data
# ============================================================================

@pytest.fixture
def fixed_clock():
    """Clock returning a constant epoch time"""
    return lambda: FIXED_EPOCH_SECONDS


@pytest.fixture
def skeleton(fixed_clock):
    """Freshly built skeleton"""
    return build_skeleton(fixed_clock)


@pytest.fixture
def filled_candidate(skeleton):
    """Generator-style response: every placeholder filled, structure untouched"""
    return fill_placeholders(copy.deepcopy(skeleton.scenario))


@pytest.fixture
def merged_scenario(skeleton, filled_candidate):
    """Filled candidate merged into the skeleton and reconciled"""
    scenario = merge_scenario(skeleton, filled_candidate)
    return reconcile_envelope_state(scenario)


# ============================================================================
# Shared Fixtures - Generation
# ============================================================================

@pytest.fixture
def dry_run_config() -> LLMServiceConfig:
    """Dry-run service configuration without call log files"""
    return LLMServiceConfig(
        mode=ServiceMode.DRY_RUN,
        logging=LoggingConfig(enabled=False),
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    """Deterministic provider that fills the prompt's skeleton"""
    return MockProvider()


@pytest.fixture
def scenario_generator(dry_run_config, mock_provider) -> ScenarioGenerator:
    """Scenario generator over the mock provider"""
    return ScenarioGenerator.from_config(dry_run_config, provider=mock_provider)


@pytest.fixture(scope="session")
def llm_api_key() -> Optional[str]:
    """Get LLM API key from environment"""
    return os.getenv('OPENROUTER_API_KEY')
