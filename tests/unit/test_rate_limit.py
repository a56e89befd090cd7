"""
Unit tests for rate limiting middleware.

Tests the rate limiting configuration, key extraction and the 429 handler.
"""

import json
import os

import pytest
from unittest.mock import Mock, patch

from api.middleware.rate_limit import (
    RateLimitConfig,
    generation_limit,
    get_limiter,
    get_rate_limit_key,
    rate_limit_exceeded_handler,
    reset_limiter,
)


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_default_config(self):
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("RATE_LIMIT_GENERATION", None)
            os.environ.pop("RATE_LIMIT_ENABLED", None)
            config = RateLimitConfig()

        assert config.generation_limit == "20/hour"
        assert config.enabled is True

    def test_env_override(self):
        """Test limits read from the environment."""
        with patch.dict(os.environ, {"RATE_LIMIT_GENERATION": "5/minute", "RATE_LIMIT_ENABLED": "false"}):
            config = RateLimitConfig()

        assert config.generation_limit == "5/minute"
        assert config.enabled is False

    def test_generation_limit_string(self):
        """Test the limit callable returns a slowapi limit string."""
        assert "/" in generation_limit()


class TestRateLimitKey:
    """Tests for rate limit key extraction."""

    def test_key_uses_client_ip(self):
        """Test that the key is derived from the client address."""
        request = Mock()
        request.client.host = "192.168.1.100"

        assert get_rate_limit_key(request) == "ip:192.168.1.100"


class TestLimiter:
    """Tests for the shared limiter instance."""

    def test_limiter_is_singleton(self):
        """Test that the same limiter is returned each time."""
        assert get_limiter() is get_limiter()

    def test_reset_limiter(self):
        """Test that resetting does not fail on a fresh limiter."""
        get_limiter()
        reset_limiter()


class TestRateLimitExceededHandler:
    """Tests for the 429 response."""

    @pytest.mark.asyncio
    async def test_returns_429_with_retry_after(self):
        """Test the handler body and Retry-After header."""
        exc = Mock(detail="20 per 1 hour", retry_after=1800)

        response = await rate_limit_exceeded_handler(Mock(), exc)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "1800"
        body = json.loads(response.body)
        assert "Too many generation requests" in body["error"]
        assert "20 per 1 hour" in body["hint"]
