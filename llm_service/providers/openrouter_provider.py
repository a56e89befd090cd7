"""
OpenRouter Provider - Direct HTTP integration

Calls the OpenRouter chat completions endpoint with httpx.
"""

from typing import Optional, Dict, Any
import time
import logging

import httpx

from llm_service.provider import GenerationResponse


logger = logging.getLogger(__name__)


class OpenRouterProvider:
    """
    Provider implementation using the OpenRouter HTTP API.

    Transport and HTTP failures are reported as ``success=False``
    responses; the caller decides what a failed generation means.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        default_model: str = "google/gemini-2.5-flash-lite",
        timeout_seconds: float = 110.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: OpenRouter API key
            base_url: API base URL
            default_model: Default model identifier
            timeout_seconds: HTTP timeout for a single request
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 16384,
        top_p: float = 0.95,
    ) -> GenerationResponse:
        """Make a single chat completion call"""
        selected_model = model or self.default_model
        start_time = time.time()

        payload = {
            "model": selected_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": top_p,
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()

            choice = data["choices"][0]
            usage = data.get("usage") or {}

            return GenerationResponse(
                text=choice["message"]["content"] or "",
                model=data.get("model", selected_model),
                tokens_in=int(usage.get("prompt_tokens", 0)),
                tokens_out=int(usage.get("completion_tokens", 0)),
                finish_reason=choice.get("finish_reason"),
                latency_ms=(time.time() - start_time) * 1000,
                success=True,
                raw_response=data,
            )

        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"OpenRouter call with {selected_model} failed: {e}")
            return GenerationResponse(
                text="",
                model=selected_model,
                tokens_in=0,
                tokens_out=0,
                finish_reason=None,
                latency_ms=(time.time() - start_time) * 1000,
                success=False,
                error=f"{type(e).__name__}: {e}",
            )

    def get_provider_name(self) -> str:
        """Get provider name"""
        return "openrouter"

    def get_default_model(self) -> str:
        """Get default model"""
        return self.default_model

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it"""
        if self._owns_client:
            await self.client.aclose()

    def _headers(self) -> Dict[str, Any]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
