"""
API middleware modules.

Provides rate limiting for the scenario API.
"""

from .rate_limit import (
    get_limiter,
    get_rate_limit_key,
    get_rate_limit_config,
    limit_generation,
    reset_limiter,
    RateLimitConfig,
    rate_limit_exceeded_handler,
)

__all__ = [
    "get_limiter",
    "get_rate_limit_key",
    "get_rate_limit_config",
    "limit_generation",
    "reset_limiter",
    "RateLimitConfig",
    "rate_limit_exceeded_handler",
]
