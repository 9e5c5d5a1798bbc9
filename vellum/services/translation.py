# =============================================================================
# Translation Service — Google Translate public endpoint
# =============================================================================
#
# Translates a thought into one of the display languages, and detects
# which language a thought was spoken in. Uses the keyless
# `translate_a/single?client=gtx` endpoint, whose response is a nested
# JSON array:
#
#   [
#     [["Hola mundo", "Hello world", null, null, 10], ...],   ← segments
#     null,
#     "en",                                                    ← source lang
#     ...
#   ]
#
# Translation failures are surfaced (the user asked for a translation and
# should know it didn't happen); detection failures fall back to "en".
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import httpx

from vellum.services.errors import TranslationError

logger = logging.getLogger(__name__)

TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"
DEFAULT_LANGUAGE = "en"
TRANSLATION_TIMEOUT_SECONDS = 10.0
TRANSLATION_FAILED_MESSAGE = "Failed to translate text. Please try again."

LANGUAGES: list[tuple[str, str]] = [
    ("en", "English"),
    ("es", "Spanish"),
    ("fr", "French"),
    ("de", "German"),
    ("it", "Italian"),
    ("pt", "Portuguese"),
    ("ru", "Russian"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("zh", "Chinese"),
    ("ar", "Arabic"),
    ("hi", "Hindi"),
    ("nl", "Dutch"),
    ("pl", "Polish"),
    ("tr", "Turkish"),
    ("sv", "Swedish"),
    ("da", "Danish"),
    ("no", "Norwegian"),
    ("fi", "Finnish"),
    ("cs", "Czech"),
]

LANGUAGE_CODES = {code for code, _ in LANGUAGES}


def join_segments(data: Any) -> str:
    """
    Concatenate the translated segments of a gtx response.

    Raises:
        TranslationError: The payload does not have the expected shape.
    """
    if isinstance(data, list) and data and isinstance(data[0], list):
        parts = [
            segment[0]
            for segment in data[0]
            if isinstance(segment, list) and segment and isinstance(segment[0], str)
        ]
        if parts:
            return "".join(parts)
    raise TranslationError("Unexpected response format from translation API")


class Translator:
    """Client for the gtx translate endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        url: str = TRANSLATE_URL,
        timeout_seconds: float = TRANSLATION_TIMEOUT_SECONDS,
    ) -> None:
        self._http_client = http_client
        self.url = url
        self.timeout_seconds = timeout_seconds

    async def _fetch(self, text: str, target_lang: str) -> Any:
        params = {
            "client": "gtx",
            "sl": "auto",
            "tl": target_lang,
            "dt": "t",
            "q": text,
        }
        headers = {"Accept": "application/json"}
        if self._http_client is not None:
            response = await self._http_client.get(
                self.url, params=params, headers=headers, timeout=self.timeout_seconds,
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def translate(self, text: str, target_lang: str = DEFAULT_LANGUAGE) -> str:
        """
        Translate `text` into `target_lang`.

        Blank text and English targets are returned unchanged.

        Raises:
            TranslationError: Network failure, non-2xx, or malformed payload.
        """
        if not text or not text.strip():
            return text
        if target_lang == DEFAULT_LANGUAGE:
            return text

        try:
            data = await self._fetch(text, target_lang)
            translated = join_segments(data)
        except (httpx.HTTPError, ValueError, TranslationError) as e:
            logger.warning("Translation to '%s' failed: %s", target_lang, e)
            raise TranslationError(TRANSLATION_FAILED_MESSAGE) from e

        logger.info(
            "Translated %d chars to '%s' (%d chars)",
            len(text), target_lang, len(translated),
        )
        return translated

    async def detect_language(self, text: str) -> str:
        """Return the detected language code, or "en" on blank input or failure."""
        if not text or not text.strip():
            return DEFAULT_LANGUAGE
        try:
            data = await self._fetch(text, DEFAULT_LANGUAGE)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Language detection failed: %s", e)
            return DEFAULT_LANGUAGE

        if isinstance(data, list) and len(data) > 2 and isinstance(data[2], str) and data[2]:
            return data[2]
        return DEFAULT_LANGUAGE


_translator: Translator | None = None


def get_translator() -> Translator:
    """Lazy singleton. Used as a FastAPI dependency."""
    global _translator
    if _translator is None:
        _translator = Translator()
    return _translator
