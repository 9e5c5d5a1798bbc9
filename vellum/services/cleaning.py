# =============================================================================
# Cleaning Service — Filler-Word Removal via Gemini (or Claude)
# =============================================================================
#
# Takes a raw spoken transcript and asks an LLM to strip speech artifacts
# ("um", "uh", stutters, repetitions) without rewriting the content.
#
# GRACEFUL DEGRADATION:
# Cleaning is cosmetic. Every failure path (missing key, timeout, API
# error, empty model output) returns the ORIGINAL transcript, so the user
# never loses a recording because the cleaner had a bad day.
#
# Backends (CLEANING_PROVIDER):
#   "google"    → GoogleAIProvider, gemini-2.0-flash (default)
#   "anthropic" → AnthropicProvider, claude-3-5-sonnet
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from vellum.config import settings
from vellum.services.errors import ProviderTimeoutError
from vellum.services.providers import (
    DEFAULT_GEMINI_MODEL,
    AnthropicProvider,
    CompletionProvider,
    GoogleAIProvider,
)

logger = logging.getLogger(__name__)

DEFAULT_CLEANING_TIMEOUT_MS = 30_000
MIN_CLEANING_TOKENS = 2048
CLEANING_TEMPERATURE = 0.3

CLEANING_PROMPT = """You are a text cleaning assistant. Your task is to clean up spoken transcripts by:

1. Removing filler words ("um", "uh", "like", "you know", etc.)
2. Removing stutters and repetitions
3. Fixing minor grammatical issues from speech
4. Preserving the user's original voice and meaning
5. Keeping the text concise but NOT rewriting it

Important: Do NOT change the core meaning or rewrite the content. Only clean up the speech artifacts.

Return ONLY the cleaned text, no explanations or additional commentary."""


@dataclass
class CleaningResult:
    """Outcome of a cleaning attempt."""

    text: str                  # Cleaned text, or the original on fallback
    cleaned: bool              # True only if the LLM output was used
    reason: str | None = None  # Why the original was returned, if it was


class CleaningService:
    """Removes filler words and speech artifacts from transcripts."""

    def __init__(
        self,
        google_api_key: str | None = None,
        timeout_ms: int | None = None,
        model: str | None = None,
        provider: CompletionProvider | None = None,
    ) -> None:
        self.provider = provider or GoogleAIProvider(
            api_key=(
                google_api_key
                if google_api_key is not None
                else settings.google_ai_api_key
            ),
            timeout_ms=timeout_ms or DEFAULT_CLEANING_TIMEOUT_MS,
            base_url=settings.google_ai_base_url,
        )
        self.model = model or DEFAULT_GEMINI_MODEL
        self.prompt = CLEANING_PROMPT

    async def clean(self, transcript: str) -> str:
        """Return the cleaned transcript, or the original on any failure."""
        result = await self.clean_detailed(transcript)
        return result.text

    async def clean_detailed(self, transcript: str) -> CleaningResult:
        """Clean a transcript and report whether the LLM output was used."""
        if not transcript or not transcript.strip():
            return CleaningResult(text=transcript, cleaned=False, reason="empty transcript")

        if not self.is_configured():
            logger.warning("Cleaning service not configured, returning original transcript")
            return CleaningResult(
                text=transcript, cleaned=False, reason="cleaning service not configured",
            )

        full_prompt = f"{self.prompt}\n\nOriginal transcript:\n{transcript}"
        try:
            cleaned_text = await self.provider.complete(
                full_prompt,
                self.model,
                max_tokens=max(len(transcript) * 2, MIN_CLEANING_TOKENS),
                temperature=CLEANING_TEMPERATURE,
            )
        except ProviderTimeoutError as e:
            logger.warning("Cleaning timed out, returning original transcript: %s", e)
            return CleaningResult(text=transcript, cleaned=False, reason="timeout")
        except Exception as e:
            logger.warning("Cleaning failed, returning original transcript: %s", e)
            return CleaningResult(text=transcript, cleaned=False, reason=str(e))

        cleaned_text = (cleaned_text or "").strip()
        if not cleaned_text:
            return CleaningResult(text=transcript, cleaned=False, reason="empty model response")

        return CleaningResult(text=cleaned_text, cleaned=True)

    def is_configured(self) -> bool:
        return bool(self.provider.api_key)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_service: CleaningService | None = None


def build_cleaning_service(provider_name: str | None = None) -> CleaningService:
    """
    Build a CleaningService for the configured backend.

    Raises:
        ValueError: Unknown provider name.
    """
    name = provider_name or settings.cleaning_provider
    if name == "google":
        return CleaningService(
            timeout_ms=settings.cleaning_timeout_ms,
            model=settings.cleaning_model,
        )
    if name == "anthropic":
        provider = AnthropicProvider(
            api_key=settings.anthropic_api_key,
            timeout_ms=settings.cleaning_timeout_ms,
        )
        return CleaningService(
            provider=provider,
            model=settings.anthropic_cleaning_model,
        )
    raise ValueError(
        f"Unknown cleaning provider '{name}'. Supported: 'google', 'anthropic'"
    )


def get_cleaning_service() -> CleaningService:
    """Lazy singleton built from settings. Used as a FastAPI dependency."""
    global _service
    if _service is None:
        _service = build_cleaning_service()
    return _service
