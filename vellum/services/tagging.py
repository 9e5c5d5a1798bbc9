# =============================================================================
# Tagging Service — Semantic Tags via Llama on Groq
# =============================================================================
#
# Asks a fast Llama model for 3–5 `#tag` tokens describing a thought.
#
# OUTPUT PARSING:
# Only `#word` tokens count. Bare words, JSON arrays, and chatter around
# the tags are ignored. Tags are lower-cased, de-duplicated in first-seen
# order, and capped at MAX_TAGS.
#
# GRACEFUL DEGRADATION:
# Any failure returns []: an untagged thought is still a saved thought.
# =============================================================================

from __future__ import annotations

import logging
import re

from vellum.config import settings
from vellum.services.providers import DEFAULT_LLAMA_MODEL, GroqProvider

logger = logging.getLogger(__name__)

DEFAULT_TAGGING_TIMEOUT_MS = 10_000
MAX_TAGS = 5
TAGGING_MAX_TOKENS = 128
TAGGING_TEMPERATURE = 0.3

_HASHTAG_RE = re.compile(r"#([\w-]+)", re.UNICODE)

TAGGING_PROMPT = """You are a semantic tagging engine for a personal voice journal.

Read the journal entry below and describe what it is ABOUT, not how it is phrased.

Rules:
- Output 3–5 tags.
- Each tag is a single lowercase word or hyphenated phrase prefixed with #.
- Prefer themes, topics and intents (e.g. #planning, #creativity, #family) over surface words.
- Do not repeat the same idea twice.
- Output ONLY the tags separated by spaces, nothing else.

Journal entry:
{{TEXT}}"""


def parse_tags(response: str, limit: int = MAX_TAGS) -> list[str]:
    """Extract normalised `#tag` tokens from a model response."""
    tags: list[str] = []
    seen: set[str] = set()
    for match in _HASHTAG_RE.finditer(response or ""):
        tag = match.group(1).strip("-_").lower()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


class TaggingService:
    """Extracts semantic tags from cleaned thought text."""

    def __init__(
        self,
        groq_api_key: str | None = None,
        timeout_ms: int | None = None,
        model: str | None = None,
        provider: GroqProvider | None = None,
    ) -> None:
        self.provider = provider or GroqProvider(
            api_key=groq_api_key if groq_api_key is not None else settings.groq_api_key,
            timeout_ms=timeout_ms or DEFAULT_TAGGING_TIMEOUT_MS,
            base_url=settings.groq_base_url,
        )
        self.model = model or DEFAULT_LLAMA_MODEL
        self.prompt = TAGGING_PROMPT

    async def extract_tags(self, text: str) -> list[str]:
        """Return up to five tags for `text`, or [] on any failure."""
        if not text or not text.strip():
            return []

        if not self.is_configured():
            logger.warning("Tagging service not configured, returning no tags")
            return []

        try:
            response = await self.provider.complete(
                self.prompt.replace("{{TEXT}}", text),
                self.model,
                max_tokens=TAGGING_MAX_TOKENS,
                temperature=TAGGING_TEMPERATURE,
            )
        except Exception as e:
            logger.warning("Tag extraction failed: %s", e)
            return []

        return parse_tags(response)

    def is_configured(self) -> bool:
        return bool(self.provider.api_key)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_service: TaggingService | None = None


def get_tagging_service() -> TaggingService:
    """Lazy singleton built from settings. Used as a FastAPI dependency."""
    global _service
    if _service is None:
        _service = TaggingService(
            timeout_ms=settings.tagging_timeout_ms,
            model=settings.tagging_model,
        )
    return _service
