"""
FastAPI application for the HDDL Scenario API.

Generates decision-envelope scenarios from free-text prompts and validates
caller-supplied scenarios.

Usage:
    uvicorn api.main:app --reload

    Or with custom settings:
    LLM_MODE=production OPENROUTER_API_KEY=... uvicorn api.main:app
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from scenario_engine import ScenarioGenerator, SchemaCache

from .deps import Settings, get_settings
from .generation_queue import SingleFlightQueue
from .middleware.rate_limit import (
    get_limiter,
    rate_limit_exceeded_handler,
    get_rate_limit_config,
)
from .models import HealthResponse, ErrorResponse
from .routes import scenarios_router

logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Closes the generation gateway on shutdown if the app created it.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")
    logger.info(f"Rate limiting: {'enabled' if get_rate_limit_config().enabled else 'disabled'}")

    yield

    logger.info(f"Shutting down {settings.api_title}")
    generator = app.state.generator
    if app.state.owns_generator and generator is not None:
        aclose = getattr(generator.gateway, "aclose", None)
        if aclose is not None:
            await aclose()


# ============================================================================
# Application Factory
# ============================================================================

def create_app(
    generator: Optional[ScenarioGenerator] = None,
    settings: Optional[Settings] = None,
    schema_cache: Optional[SchemaCache] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        generator: Scenario generator (built from the environment on first use if omitted)
        settings: API settings (environment if omitted)
        schema_cache: Schema cache (one reading settings.schema_path if omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
HDDL Scenario API

Generates structurally guaranteed decision-envelope scenarios.

## Features

- **Generation**: Free-text prompt to validated scenario, one generation at a time
- **Cancellation**: Cancel or supersede a pending generation by requestId
- **Validation**: Run the scenario invariant checks over any scenario
        """,
        lifespan=lifespan,
        debug=settings.debug,
    )

    application.state.settings = settings
    application.state.generator = generator
    application.state.owns_generator = False
    application.state.queue = SingleFlightQueue()
    application.state.schema_cache = schema_cache or SchemaCache(settings.schema_path)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add rate limiter to app state
    application.state.limiter = get_limiter()
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    application.include_router(scenarios_router)

    @application.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=str(exc) if settings.debug else "An internal error occurred",
            ).model_dump(exclude_none=True),
        )

    @application.get("/", include_in_schema=False)
    async def root():
        """Root endpoint."""
        return {
            "message": settings.api_title,
            "docs": "/docs",
            "health": "/health",
        }

    @application.get("/health", response_model=HealthResponse, tags=["system"])
    async def health_check(request: Request):
        """
        Health check endpoint.

        Returns API status and generation queue statistics.
        """
        state = request.app.state
        mode = "unconfigured"
        if state.generator is not None:
            config = getattr(state.generator.gateway, "config", None)
            mode = config.mode.value if config is not None else "custom"

        return HealthResponse(
            status="healthy",
            version=settings.api_version,
            timestamp=datetime.now(timezone.utc),
            mode=mode,
            rate_limiting=get_rate_limit_config().enabled,
            queue=state.queue.stats(),
        )

    return application


# ============================================================================
# Default Application Instance
# ============================================================================

app = create_app()


# ============================================================================
# CLI Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8080,
        reload=get_settings().debug,
    )
