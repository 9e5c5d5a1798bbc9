# =============================================================================
# Usage API — Current Period Consumption
# =============================================================================
#
# ENDPOINT:
#   GET /api/usage   tier, tokens/minutes used this month, limits
#
# Reading usage also rolls the period over when a new month has started,
# so the numbers shown are the ones the next pipeline call will see.
# =============================================================================

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.api.deps import get_current_user, get_user_id
from vellum.db.engine import get_async_session
from vellum.models.responses import UsageResponse
from vellum.services.auth import AuthenticatedUser
from vellum.services.usage import get_or_create_profile, summarize

router = APIRouter(tags=["Usage"])


@router.get(
    "/usage",
    response_model=UsageResponse,
    summary="Get the current user's usage for this month",
)
async def get_usage(
    user: AuthenticatedUser | None = Depends(get_current_user),
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> UsageResponse:
    profile = await get_or_create_profile(
        session, user_id, email=user.email if user else None,
    )
    summary = summarize(profile)
    return UsageResponse(
        tier=summary.tier,
        tracked=summary.tracked,
        tokens_used=summary.tokens_used,
        token_limit=summary.token_limit,
        tokens_remaining=summary.tokens_remaining,
        minutes_used=summary.minutes_used,
        minute_limit=summary.minute_limit,
        minutes_remaining=summary.minutes_remaining,
        limit_reached=summary.limit_reached,
        period_start=summary.period_start,
    )
