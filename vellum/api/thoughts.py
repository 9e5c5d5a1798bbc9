# =============================================================================
# Thoughts API — Saved Notes, Scoped to the Acting User
# =============================================================================
#
# ENDPOINTS:
#   GET    /api/thoughts            list (newest first, ?tag= filter, paging)
#   POST   /api/thoughts            save a thought, record its token usage
#   GET    /api/thoughts/{id}
#   PATCH  /api/thoughts/{id}       title / cleaned_text / tags / category
#   DELETE /api/thoughts/{id}
#
# Ownership: every lookup filters on the acting user's id. Someone else's
# thought gets the same 404 as one that never existed.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.api.deps import get_current_user, get_user_id
from vellum.db.engine import get_async_session
from vellum.db.models import Thought
from vellum.models.requests import CreateThoughtRequest, UpdateThoughtRequest
from vellum.models.responses import ThoughtListResponse, ThoughtResponse
from vellum.services import thoughts as thought_store
from vellum.services.auth import AuthenticatedUser
from vellum.services.usage import (
    estimate_total_tokens,
    estimate_typed_thought_tokens,
    get_or_create_profile,
    record_tokens,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Thoughts"])


# ---------------------------------------------------------------------------
# GET /api/thoughts — List
# ---------------------------------------------------------------------------


@router.get(
    "/thoughts",
    response_model=ThoughtListResponse,
    summary="List the current user's thoughts",
)
async def list_thoughts(
    tag: str | None = Query(default=None, description="Only thoughts with this tag"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> ThoughtListResponse:
    thoughts, total = await thought_store.list_thoughts(
        session, user_id, tag=tag, limit=limit, offset=offset,
    )
    return ThoughtListResponse(
        thoughts=[ThoughtResponse.model_validate(t) for t in thoughts],
        total=total,
    )


# ---------------------------------------------------------------------------
# POST /api/thoughts — Create
# ---------------------------------------------------------------------------


@router.post(
    "/thoughts",
    response_model=ThoughtResponse,
    status_code=201,
    summary="Save a thought",
    description=(
        "Persist a transcribed (or typed) thought. The estimated token cost "
        "of producing it is added to the user's monthly usage."
    ),
)
async def create_thought(
    request: CreateThoughtRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> ThoughtResponse:
    if request.source == "typed":
        tokens = estimate_typed_thought_tokens(
            request.raw_transcript, request.cleaned_text, request.tags,
        )
    else:
        tokens = estimate_total_tokens(
            request.raw_transcript, request.cleaned_text, request.tags,
        )

    # Profile must exist before the thought (foreign key)
    profile = await get_or_create_profile(
        session, user_id, email=user.email if user else None,
    )
    thought = await thought_store.create_thought(
        session,
        user_id,
        raw_transcript=request.raw_transcript,
        cleaned_text=request.cleaned_text,
        tags=request.tags,
        category=request.category,
        title=request.title,
        source=request.source,
        tokens_used=tokens,
    )
    record_tokens(profile, tokens)
    return ThoughtResponse.model_validate(thought)


# ---------------------------------------------------------------------------
# GET /api/thoughts/{thought_id}
# ---------------------------------------------------------------------------


@router.get(
    "/thoughts/{thought_id}",
    response_model=ThoughtResponse,
    summary="Get one thought",
)
async def get_thought(
    thought_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> ThoughtResponse:
    thought = await _get_thought_or_404(session, user_id, thought_id)
    return ThoughtResponse.model_validate(thought)


# ---------------------------------------------------------------------------
# PATCH /api/thoughts/{thought_id}
# ---------------------------------------------------------------------------


@router.patch(
    "/thoughts/{thought_id}",
    response_model=ThoughtResponse,
    summary="Edit a thought",
)
async def update_thought(
    thought_id: str,
    request: UpdateThoughtRequest,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> ThoughtResponse:
    thought = await _get_thought_or_404(session, user_id, thought_id)
    thought = await thought_store.update_thought(
        session,
        thought,
        title=request.title,
        cleaned_text=request.cleaned_text,
        tags=request.tags,
        category=request.category,
    )
    return ThoughtResponse.model_validate(thought)


# ---------------------------------------------------------------------------
# DELETE /api/thoughts/{thought_id}
# ---------------------------------------------------------------------------


@router.delete(
    "/thoughts/{thought_id}",
    status_code=204,
    summary="Delete a thought",
)
async def delete_thought(
    thought_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    thought = await _get_thought_or_404(session, user_id, thought_id)
    await thought_store.delete_thought(session, thought)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _get_thought_or_404(
    session: AsyncSession, user_id: str, thought_id: str,
) -> Thought:
    """Load the user's thought by ID or raise 404."""
    thought = await thought_store.get_thought(session, user_id, thought_id)
    if thought is None:
        raise HTTPException(status_code=404, detail="Thought not found")
    return thought
