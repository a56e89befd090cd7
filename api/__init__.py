"""
Public API for the HDDL scenario engine.

Provides RESTful access to:
- Scenario generation with cancellation
- Scenario validation
- The scenario JSON Schema
"""

from .main import app, create_app
from .generation_queue import SingleFlightQueue, run_with_timeout
from .handlers import HandlerResult
from .models import (
    GenerateScenarioRequest,
    GenerateScenarioResponse,
    ValidateScenarioRequest,
    ValidateScenarioResponse,
    HealthResponse,
    ErrorResponse,
)


__all__ = [
    # Application
    "app",
    "create_app",
    # Components
    "SingleFlightQueue",
    "run_with_timeout",
    "HandlerResult",
    # Models
    "GenerateScenarioRequest",
    "GenerateScenarioResponse",
    "ValidateScenarioRequest",
    "ValidateScenarioResponse",
    "HealthResponse",
    "ErrorResponse",
]

__version__ = "0.1.0"
