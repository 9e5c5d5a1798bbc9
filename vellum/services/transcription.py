# =============================================================================
# Transcription Service — Whisper Large v3 via Groq
# =============================================================================
#
# Unlike cleaning and tagging, transcription has no sensible fallback: with
# no transcript there is nothing to save. Failures are therefore re-raised as
# TranscriptionError and surfaced to the client as HTTP errors.
# =============================================================================

from __future__ import annotations

import logging

from vellum.config import settings
from vellum.services.errors import TranscriptionError
from vellum.services.providers import DEFAULT_WHISPER_MODEL, GroqProvider

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_TIMEOUT_MS = 300_000  # 5 minutes for long recordings


class TranscriptionService:
    """Turns recorded audio into raw transcript text."""

    def __init__(
        self,
        groq_api_key: str | None = None,
        timeout_ms: int | None = None,
        model: str | None = None,
        language: str | None = "en",
        provider: GroqProvider | None = None,
    ) -> None:
        self.provider = provider or GroqProvider(
            api_key=groq_api_key if groq_api_key is not None else settings.groq_api_key,
            timeout_ms=timeout_ms or DEFAULT_TRANSCRIPTION_TIMEOUT_MS,
            base_url=settings.groq_base_url,
        )
        self.model = model or DEFAULT_WHISPER_MODEL
        self.language = language

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str = "audio/webm",
        filename: str | None = None,
        language: str | None = None,
    ) -> str:
        """
        Transcribe an audio buffer.

        Raises:
            TranscriptionError: "Transcription failed: <reason>" for any
                provider failure (missing key, API error, timeout).
        """
        logger.info(
            "Starting transcription: %d bytes, mime_type=%s, model=%s",
            len(audio), mime_type, self.model,
        )
        try:
            text = await self.provider.transcribe(
                audio,
                mime_type,
                filename=filename,
                model=self.model,
                language=language or self.language,
            )
        except Exception as e:
            logger.error("Transcription error: %s", e)
            raise TranscriptionError(f"Transcription failed: {e}") from e

        logger.info("Transcription successful: %d chars", len(text or ""))
        return text

    def is_configured(self) -> bool:
        return bool(self.provider.api_key)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_service: TranscriptionService | None = None


def get_transcription_service() -> TranscriptionService:
    """Lazy singleton built from settings. Used as a FastAPI dependency."""
    global _service
    if _service is None:
        _service = TranscriptionService(
            timeout_ms=settings.transcription_timeout_ms,
            model=settings.transcription_model,
            language=settings.transcription_language,
        )
    return _service
