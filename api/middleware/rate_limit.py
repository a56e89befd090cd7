"""
Rate limiting middleware for the scenario API.

Uses slowapi for in-memory, per-client-IP rate limiting. Generation calls
are expensive, so they carry their own hourly limit.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address


# ============================================================================
# Configuration
# ============================================================================

@dataclass
class RateLimitConfig:
    """Rate limit configuration."""

    # Scenario generations per client IP
    generation_limit: str = field(default_factory=lambda: os.getenv("RATE_LIMIT_GENERATION", "20/hour"))

    # Enable/disable rate limiting
    enabled: bool = field(default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true")


# Global config instance
_config: Optional[RateLimitConfig] = None


def get_rate_limit_config() -> RateLimitConfig:
    """Get rate limit configuration."""
    global _config
    if _config is None:
        _config = RateLimitConfig()
    return _config


# ============================================================================
# Rate Limit Key Functions
# ============================================================================

def get_rate_limit_key(request: Request) -> str:
    """
    Get rate limit key from request.

    Args:
        request: FastAPI request

    Returns:
        Rate limit key for the client IP address
    """
    return f"ip:{get_remote_address(request)}"


def generation_limit() -> str:
    """Limit string for generation endpoints (e.g., "20/hour")."""
    return get_rate_limit_config().generation_limit


# ============================================================================
# Limiter Setup
# ============================================================================

# Global limiter instance
_limiter: Optional[Limiter] = None


def get_limiter() -> Limiter:
    """
    Get or create the rate limiter.

    Returns:
        Slowapi Limiter instance
    """
    global _limiter
    if _limiter is None:
        config = get_rate_limit_config()
        _limiter = Limiter(
            key_func=get_rate_limit_key,
            enabled=config.enabled,
            storage_uri="memory://",
        )
    return _limiter


def reset_limiter() -> None:
    """Clear recorded hits (for testing)."""
    if _limiter is not None:
        _limiter.reset()


# ============================================================================
# Exception Handler
# ============================================================================

async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Handle rate limit exceeded errors.

    Args:
        request: FastAPI request
        exc: RateLimitExceeded exception

    Returns:
        JSONResponse with 429 status
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many generation requests. Please try again later.",
            "hint": f"Rate limit exceeded: {exc.detail}",
            "limit": get_rate_limit_config().generation_limit,
        },
        headers={
            "Retry-After": str(getattr(exc, "retry_after", 3600)),
        }
    )


# ============================================================================
# Decorators for Common Rate Limits
# ============================================================================

def limit_generation():
    """
    Rate limit decorator for generation endpoints.

    Usage:
        @router.post("/generate")
        @limit_generation()
        async def generate(request: Request):
            ...
    """
    return get_limiter().limit(generation_limit)
