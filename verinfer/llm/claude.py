"""
Claude Provider — Anthropic Messages API implementation.

Uses the anthropic SDK. Client is lazily initialized —
app loads without an API key and only fails on actual LLM call.

Features:
- Retries with backoff are left to the SDK (429, 5xx, connection errors)
- Circuit breaker: after consecutive failures, fail fast for 60s
"""

from __future__ import annotations

import logging
from typing import Optional

import anthropic

from verinfer.config import settings
from verinfer.llm import LLMProvider
from verinfer.llm.breaker import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("verinfer.llm.claude")

DEFAULT_MAX_RETRIES = 2


def _response_text(response) -> str:
    """Join the text blocks of a Messages API response."""
    parts = [
        getattr(block, "text", "")
        for block in getattr(response, "content", [])
        if getattr(block, "type", "") == "text"
    ]
    return "\n".join(parts).strip()


class ClaudeProvider(LLMProvider):
    """Anthropic Claude LLM provider with circuit breaker."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self._api_key = api_key or settings.ANTHROPIC_API_KEY
        self._model = model or settings.ANTHROPIC_MODEL
        self._max_tokens = max_tokens or settings.MAX_TOKENS
        self._max_retries = max_retries
        self._client: Optional[anthropic.AsyncAnthropic] = None
        self.circuit_breaker = CircuitBreaker()

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError(
                    "ANTHROPIC_API_KEY not set. Get one from "
                    "https://console.anthropic.com/"
                )
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key, max_retries=self._max_retries,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        if self.circuit_breaker.is_open:
            raise CircuitOpenError(
                "LLM circuit breaker is open: too many consecutive failures."
            )

        kwargs = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            kwargs["system"] = system_instruction

        try:
            response = await self._get_client().messages.create(**kwargs)
        except Exception as e:
            logger.error("Claude request failed: %s", e)
            self.circuit_breaker.record_failure()
            raise

        self.circuit_breaker.record_success()
        return _response_text(response)
