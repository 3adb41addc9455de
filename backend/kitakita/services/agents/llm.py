"""Gemini gateway used by every agent.

Requests go through the shared sliding-window limiter and the 429 retry
policy. The gateway returns the raw candidate text; callers run it through
`fallback.parse_ai_response` before trusting it.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ...config import GEMINI_SAFETY_SETTINGS, settings
from .errors import (
    GatewayError,
    GatewayNotConfiguredError,
    MalformedResponseError,
    RateLimitError,
)
from .rate_limit import BackoffPolicy, SlidingWindowRateLimiter, get_shared_rate_limiter, retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}


def build_payload(prompt: str, generation_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a generateContent request body."""
    return {
        "contents": [
            {
                "parts": [{"text": prompt}]
            }
        ],
        "generationConfig": {**DEFAULT_GENERATION_CONFIG, **(generation_config or {})},
        "safetySettings": GEMINI_SAFETY_SETTINGS,
    }


def extract_text(data: Dict[str, Any]) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a response body."""
    candidates = data.get("candidates") or []
    if candidates:
        parts = candidates[0].get("content", {}).get("parts") or []
        if parts and "text" in parts[0]:
            return parts[0]["text"]
    raise MalformedResponseError("Gateway response has no candidate text")


class GeminiGateway:
    """Async client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        limiter: Optional[SlidingWindowRateLimiter] = None,
        policy: Optional[BackoffPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GEMINI_TIMEOUT
        self.limiter = limiter or get_shared_rate_limiter()
        self.policy = policy or BackoffPolicy.from_settings()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(
        self,
        prompt: str,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send a prompt and return the model's raw text.

        Args:
            prompt: The prompt to send to the model
            generation_config: Overrides for temperature, topK, topP, maxOutputTokens

        Returns:
            Candidate text (untrusted, may not be JSON)

        Raises:
            GatewayNotConfiguredError: no API key
            RetryExhaustedError: every attempt was rate limited
            GatewayError: any other non-2xx response or transport failure
            MalformedResponseError: response without candidate text
        """
        if not self.is_configured:
            logger.warning("[LLM] GEMINI_API_KEY not found in environment")
            raise GatewayNotConfiguredError("GEMINI_API_KEY is not configured")

        payload = build_payload(prompt, generation_config)
        logger.debug(f"[LLM] Making API call to {self.model}: {prompt[:100]}")

        async def attempt() -> str:
            return await self._post(payload)

        return await retry_with_backoff(attempt, self.policy, self.limiter)

    async def _post(self, payload: Dict[str, Any]) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise RateLimitError() from e
            # Include response body for debugging
            try:
                error_detail = e.response.json().get("error", {}).get("message", "")
            except ValueError:
                error_detail = e.response.text[:200] if e.response.text else ""
            logger.error(f"[LLM] HTTP error: {status} - {error_detail}")
            raise GatewayError(f"API error: {status} - {error_detail}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.error(f"[LLM] Transport error: {e}")
            raise GatewayError(f"Error calling LLM: {e}") from e
        except ValueError as e:
            raise MalformedResponseError(f"Gateway response is not JSON: {e}") from e

        return extract_text(data)


# Global gateway instance
_gateway: Optional[GeminiGateway] = None


def get_gateway() -> GeminiGateway:
    """Get or create the default gateway."""
    global _gateway
    if _gateway is None:
        _gateway = GeminiGateway()
    return _gateway
