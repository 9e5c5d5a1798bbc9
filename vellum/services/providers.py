# =============================================================================
# AI Provider Clients — Groq, Google AI (Gemini), Anthropic
# =============================================================================
#
# Thin async clients for the three upstream AI APIs used by the pipeline.
# Each provider shares the BaseProvider plumbing:
#   - with_timeout(): races the upstream call against a deadline
#   - validate_api_key(): fails fast before any network I/O
#
# ARCHITECTURE:
#   CompletionProvider (Protocol)   — anything with `complete(prompt, ...)`
#   BaseProvider                    — key + timeout handling
#   ├── GroqProvider                — OpenAI-compatible API (openai SDK)
#   │   ├── transcribe()            — Whisper Large v3
#   │   └── complete()              — Llama chat completions
#   ├── GoogleAIProvider            — Gemini REST API (httpx)
#   │   └── complete()              — generateContent
#   └── AnthropicProvider           — Claude (anthropic SDK)
#       └── complete()              — messages.create
#
# All errors leave this module as ProviderError subclasses with a
# provider-prefixed message ("Groq API error: ..."), so callers never need
# to know which SDK raised.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar

import httpx
from anthropic import APIError as AnthropicAPIError
from anthropic import AsyncAnthropic
from openai import APIError as OpenAIAPIError
from openai import AsyncOpenAI

from vellum.services.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 30_000

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GOOGLE_AI_BASE_URL = "https://generativelanguage.googleapis.com/v1"

DEFAULT_WHISPER_MODEL = "whisper-large-v3"
DEFAULT_LLAMA_MODEL = "llama-3.3-70b-versatile"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class CompletionProvider(Protocol):
    """Any provider that turns a single prompt into text."""

    api_key: str

    async def complete(
        self,
        prompt: str,
        model: str = ...,
        max_tokens: int = ...,
        temperature: float = ...,
    ) -> str:
        ...


# ---------------------------------------------------------------------------
# Base Class
# ---------------------------------------------------------------------------


class BaseProvider:
    """Shared API-key and timeout handling for all providers."""

    def __init__(self, api_key: str | None = "", timeout_ms: int | None = None) -> None:
        self.api_key = api_key or ""
        self.timeout_ms = timeout_ms or DEFAULT_TIMEOUT_MS

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def with_timeout(
        self,
        awaitable: Awaitable[T],
        timeout_ms: int | None = None,
    ) -> T:
        """
        Await `awaitable`, giving up after `timeout_ms` (default: the
        provider's own timeout).

        Raises:
            ProviderTimeoutError: "Request timed out after {ms}ms".
        """
        timeout = timeout_ms or self.timeout_ms
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout / 1000)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"Request timed out after {timeout}ms"
            ) from e

    def validate_api_key(self) -> None:
        """Raise ProviderNotConfiguredError when no key is set."""
        if not self.api_key:
            raise ProviderNotConfiguredError(
                f"{type(self).__name__} API key is not configured"
            )


# ---------------------------------------------------------------------------
# Groq — Whisper transcription + Llama completions
# ---------------------------------------------------------------------------


class GroqProvider(BaseProvider):
    """
    Groq provider over its OpenAI-compatible endpoint.

    The openai SDK is pointed at Groq's base URL, so both Whisper
    transcription and chat completions go through one AsyncOpenAI client.
    The client is created on first use, after the key has been validated.
    """

    def __init__(
        self,
        api_key: str | None = "",
        timeout_ms: int | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(api_key, timeout_ms)
        self.base_url = base_url or GROQ_BASE_URL
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=1,
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str = "audio/webm",
        filename: str | None = None,
        model: str = DEFAULT_WHISPER_MODEL,
        language: str | None = "en",
    ) -> str:
        """Transcribe an audio payload. Returns "" when Whisper hears nothing."""
        self.validate_api_key()

        kwargs: dict[str, Any] = {
            "file": (filename or "audio.webm", audio, mime_type),
            "model": model,
        }
        if language:
            kwargs["language"] = language

        client = self._get_client()
        try:
            response = await self.with_timeout(
                client.audio.transcriptions.create(**kwargs)
            )
        except OpenAIAPIError as e:
            raise ProviderError(f"Groq API error: {e.message}") from e

        return getattr(response, "text", "") or ""

    async def complete(
        self,
        prompt: str,
        model: str = DEFAULT_LLAMA_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        """Single-turn chat completion. Returns "" when there are no choices."""
        self.validate_api_key()

        client = self._get_client()
        try:
            response = await self.with_timeout(
                client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
            )
        except OpenAIAPIError as e:
            raise ProviderError(f"Groq API error: {e.message}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Google AI Studio — Gemini over REST
# ---------------------------------------------------------------------------


class GoogleAIProvider(BaseProvider):
    """
    Gemini provider calling the generateContent REST endpoint with httpx.

    Pass a shared `http_client` to reuse connections; otherwise a client is
    opened per call. Client-level timeouts are disabled because the
    provider deadline (with_timeout) governs the whole request.
    """

    def __init__(
        self,
        api_key: str | None = "",
        timeout_ms: int | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key, timeout_ms)
        self.base_url = (base_url or GOOGLE_AI_BASE_URL).rstrip("/")
        self._http_client = http_client

    async def _post(self, url: str, body: dict) -> httpx.Response:
        params = {"key": self.api_key}
        if self._http_client is not None:
            return await self._http_client.post(url, params=params, json=body)
        async with httpx.AsyncClient(timeout=None) as client:
            return await client.post(url, params=params, json=body)

    async def complete(
        self,
        prompt: str,
        model: str = DEFAULT_GEMINI_MODEL,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        generation_config: dict | None = None,
    ) -> str:
        """Generate text with a Gemini model. Returns "" with no candidates."""
        self.validate_api_key()

        url = f"{self.base_url}/models/{model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
                **(generation_config or {}),
            },
        }

        try:
            response = await self.with_timeout(self._post(url, body))
        except httpx.HTTPError as e:
            raise ProviderError(f"Google AI API error: {e}") from e

        if response.is_error:
            message = _extract_error_message(response)
            logger.error("Google AI API error (%d): %s", response.status_code, message)
            raise ProviderError(f"Google AI API error: {message}")

        data = response.json()
        try:
            return data["candidates"][0]["content"]["parts"][0].get("text", "") or ""
        except (KeyError, IndexError, TypeError):
            return ""


def _extract_error_message(response: httpx.Response) -> str:
    """Pull `error.message` (or a bare `error` string) out of an error body."""
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error"

    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return response.reason_phrase or "Unknown error"


# ---------------------------------------------------------------------------
# Anthropic — Claude
# ---------------------------------------------------------------------------


class AnthropicProvider(BaseProvider):
    """Claude provider via the native Anthropic SDK (alternate cleaner)."""

    def __init__(
        self,
        api_key: str | None = "",
        timeout_ms: int | None = None,
        client: AsyncAnthropic | None = None,
    ) -> None:
        super().__init__(api_key, timeout_ms)
        self._client = client

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=1)
        return self._client

    async def complete(
        self,
        prompt: str,
        model: str = DEFAULT_CLAUDE_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        """Generate text with Claude. Returns the first text block."""
        self.validate_api_key()

        client = self._get_client()
        try:
            response = await self.with_timeout(
                client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=[{"role": "user", "content": prompt}],
                )
            )
        except AnthropicAPIError as e:
            raise ProviderError(f"Anthropic API error: {e.message}") from e

        for block in response.content:
            if block.type == "text":
                return block.text
        return ""
