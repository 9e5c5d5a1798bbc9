# =============================================================================
# Thought Store — Per-User CRUD over the thoughts table
# =============================================================================
#
# Every query here takes the owner's user_id and filters on it. A thought
# owned by someone else is treated exactly like a missing one (None), so
# the route layer answers 404 in both cases and never leaks existence.
#
# Tags are normalised on the way in: "#Work", "work " and "WORK" are the
# same tag.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.db.models import Thought, is_valid_id

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 64
SOURCES = ("voice", "typed")


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Lower-case, strip leading '#', drop blanks and duplicates (order kept)."""
    if not tags:
        return []
    seen: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lstrip("#").strip().lower()[:MAX_TAG_LENGTH]
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


async def list_thoughts(
    session: AsyncSession,
    user_id: str,
    tag: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Thought], int]:
    """Return (page of thoughts newest first, total matching count)."""
    conditions = [Thought.user_id == user_id]
    if tag:
        normalized = normalize_tags([tag])
        if normalized:
            conditions.append(Thought.tags.any(normalized[0]))

    stmt = (
        select(Thought)
        .where(*conditions)
        .order_by(Thought.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    thoughts = list(result.scalars().all())

    count_stmt = select(func.count(Thought.id)).where(*conditions)
    total = (await session.execute(count_stmt)).scalar() or 0
    return thoughts, total


async def get_thought(
    session: AsyncSession, user_id: str, thought_id: str,
) -> Thought | None:
    """Load a thought if it exists AND belongs to `user_id`."""
    # Malformed ids can never match a uuid column
    if not is_valid_id(thought_id):
        return None
    stmt = select(Thought).where(
        Thought.id == thought_id,
        Thought.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_thought(
    session: AsyncSession,
    user_id: str,
    raw_transcript: str,
    cleaned_text: str | None = None,
    tags: Iterable[str] | None = None,
    category: str | None = None,
    title: str | None = None,
    source: str = "voice",
    tokens_used: int = 0,
) -> Thought:
    thought = Thought(
        user_id=user_id,
        raw_transcript=raw_transcript,
        cleaned_text=cleaned_text,
        tags=normalize_tags(tags),
        category=category,
        title=title,
        source=source if source in SOURCES else "voice",
        tokens_used=tokens_used,
    )
    session.add(thought)
    await session.flush()
    await session.refresh(thought)

    logger.info(
        "Thought created: id=%s, user=%s, tags=%d, tokens=%d",
        thought.id, user_id, len(thought.tags), tokens_used,
    )
    return thought


async def update_thought(
    session: AsyncSession,
    thought: Thought,
    *,
    title: str | None = None,
    cleaned_text: str | None = None,
    tags: Iterable[str] | None = None,
    category: str | None = None,
) -> Thought:
    """Apply a partial update; None leaves a field unchanged."""
    if title is not None:
        thought.title = title
    if cleaned_text is not None:
        thought.cleaned_text = cleaned_text
    if tags is not None:
        thought.tags = normalize_tags(tags)
    if category is not None:
        thought.category = category

    await session.flush()
    await session.refresh(thought)
    return thought


async def delete_thought(session: AsyncSession, thought: Thought) -> None:
    await session.delete(thought)
    await session.flush()
    logger.info("Thought deleted: id=%s, user=%s", thought.id, thought.user_id)


async def delete_all_for_user(session: AsyncSession, user_id: str) -> int:
    """Delete every thought owned by `user_id`. Returns the number removed."""
    stmt = select(Thought).where(Thought.user_id == user_id)
    result = await session.execute(stmt)
    thoughts = list(result.scalars().all())
    for thought in thoughts:
        await session.delete(thought)
    await session.flush()
    return len(thoughts)
