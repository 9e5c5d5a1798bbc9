# =============================================================================
# Usage Accounting — Token Estimation & Monthly Limits
# =============================================================================
#
# Two halves:
#
# 1. Token estimation (pure functions).
#    Provider responses don't report comparable token counts (Whisper bills
#    by audio, Gemini and Groq count differently), so usage is estimated
#    from text with a fixed heuristic:
#        tokens ≈ words / 0.75     (English averages ~0.75 words per token)
#        tokens ≈ chars / 4        (fallback when there are no words)
#    Transcription input (audio) is counted as 2× the transcript's tokens.
#
# 2. Profile bookkeeping (async, takes a session).
#    Counters live on the profile row and reset at the start of each
#    calendar month. Only trial and apprentice tiers are tracked.
# =============================================================================

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from vellum.db.models import Profile
from vellum.services import tiers

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Token Estimation
# ---------------------------------------------------------------------------


def estimate_tokens(text: str | None) -> int:
    """Estimate the token count of `text`. 0 for empty or non-string input."""
    if not text or not isinstance(text, str):
        return 0
    trimmed = text.strip()
    if not trimmed:
        return 0

    word_count = len(trimmed.split())
    if word_count > 0:
        return math.ceil(word_count / 0.75)
    return math.ceil(len(trimmed) / 4)


def estimate_transcription_tokens(transcript: str | None) -> int:
    """Estimated input tokens for transcribing audio that produced `transcript`."""
    return math.ceil(estimate_tokens(transcript) * 2)


def _tags_text(tags: list[str] | None) -> str:
    return ", ".join(tags) if isinstance(tags, list) else ""


def estimate_typed_thought_tokens(
    raw_text: str | None,
    cleaned_text: str | None,
    tags: list[str] | None = None,
) -> int:
    """Cleaning (in + out) plus tagging (in + out); no transcription."""
    cleaning = estimate_tokens(raw_text) + estimate_tokens(cleaned_text)
    tagging = estimate_tokens(cleaned_text) + estimate_tokens(_tags_text(tags))
    return cleaning + tagging


def estimate_total_tokens(
    raw_transcript: str | None,
    cleaned_text: str | None,
    tags: list[str] | None = None,
) -> int:
    """Transcription (audio in + text out) plus cleaning plus tagging."""
    transcription = (
        estimate_transcription_tokens(raw_transcript)
        + estimate_tokens(raw_transcript)
    )
    return transcription + estimate_typed_thought_tokens(
        raw_transcript, cleaned_text, tags,
    )


def add_usage(current: int | float | None, new: int | float) -> int | float:
    """Add to a counter that may not have been initialised yet."""
    return (current or 0) + new


# ---------------------------------------------------------------------------
# Usage Summary
# ---------------------------------------------------------------------------


@dataclass
class UsageSummary:
    """Current-period usage for one profile."""

    tier: str
    tracked: bool
    tokens_used: int
    token_limit: int | None
    minutes_used: float
    minute_limit: int | None
    period_start: datetime | None

    @property
    def tokens_remaining(self) -> int | None:
        if self.token_limit is None:
            return None
        return max(self.token_limit - self.tokens_used, 0)

    @property
    def minutes_remaining(self) -> float | None:
        if self.minute_limit is None:
            return None
        return max(self.minute_limit - self.minutes_used, 0.0)

    @property
    def limit_reached(self) -> bool:
        if not self.tracked:
            return False
        if self.token_limit is not None and self.tokens_used >= self.token_limit:
            return True
        if self.minute_limit is not None and self.minutes_used >= self.minute_limit:
            return True
        return False


def summarize(profile: Profile) -> UsageSummary:
    return UsageSummary(
        tier=profile.tier or tiers.DEFAULT_TIER,
        tracked=tiers.should_track_usage(profile.tier),
        tokens_used=profile.tokens_used or 0,
        token_limit=tiers.token_limit(profile.tier),
        minutes_used=round(profile.minutes_used or 0.0, 1),
        minute_limit=tiers.minute_limit(profile.tier),
        period_start=profile.usage_period_start,
    )


# ---------------------------------------------------------------------------
# Profile Bookkeeping
# ---------------------------------------------------------------------------


def reset_period_if_needed(profile: Profile, now: datetime | None = None) -> bool:
    """
    Zero the counters when the stored period began in an earlier month.

    Returns True if the counters were reset.
    """
    now = now or datetime.now(UTC)
    start = profile.usage_period_start
    if start is not None and (start.year, start.month) == (now.year, now.month):
        return False

    profile.tokens_used = 0
    profile.minutes_used = 0.0
    profile.usage_period_start = now.replace(
        day=1, hour=0, minute=0, second=0, microsecond=0,
    )
    return start is not None


async def get_or_create_profile(
    session: AsyncSession,
    user_id: str,
    email: str | None = None,
) -> Profile:
    """Load the profile for `user_id`, creating a trial profile if missing."""
    profile = await session.get(Profile, user_id)
    if profile is None:
        profile = Profile(
            id=user_id,
            email=email,
            tier=tiers.DEFAULT_TIER,
            tokens_used=0,
            minutes_used=0.0,
        )
        session.add(profile)
        await session.flush()
        logger.info("Created profile for user %s", user_id)
    elif email and not profile.email:
        profile.email = email

    if reset_period_if_needed(profile):
        logger.info("Reset monthly usage for user %s", user_id)
    return profile


def record_tokens(profile: Profile, tokens: int) -> bool:
    """Add `tokens` to a tracked profile. Returns True if anything was recorded."""
    if tokens <= 0 or not tiers.should_track_usage(profile.tier):
        return False
    profile.tokens_used = add_usage(profile.tokens_used, tokens)
    return True


def record_minutes(profile: Profile, duration_seconds: float | None) -> bool:
    """
    Add audio minutes (rounded up to 0.1) to a tracked profile.

    Returns True if anything was recorded.
    """
    if not duration_seconds or duration_seconds <= 0:
        return False
    if not tiers.should_track_usage(profile.tier):
        return False
    minutes = math.ceil(duration_seconds / 6) / 10
    profile.minutes_used = round(add_usage(profile.minutes_used, minutes), 1)
    return True
