# =============================================================================
# API Dependencies — Auth, Ownership, Rate Limits, Usage Allowance
# =============================================================================
#
# FastAPI dependencies shared by the routers:
#
# 1. get_current_user()          — verify the Supabase bearer token
# 2. get_user_id()               — the acting user id (dev user when auth off)
# 3. ensure_same_user()          — body userId must match the token's user
# 4. enforce_pipeline_limits()   — per-user rate limit + monthly usage cap
#
# DESIGN DECISION: HTTPBearer(auto_error=False) so that when auth is
# disabled, a missing header is not an error. get_current_user returns None
# in that case and every check downstream becomes a no-op, which keeps the
# SPA usable against a local backend with no Supabase project.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.config import settings
from vellum.db.engine import get_async_session
from vellum.db.models import Profile
from vellum.services.auth import AuthenticatedUser, verify_access_token
from vellum.services.errors import AuthNotConfiguredError
from vellum.services.rate_limiter import check_rate_limit
from vellum.services.usage import get_or_create_profile, summarize

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs (shows "Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser | None:
    """
    Resolve the Supabase user behind the request.

    When auth_enabled=False: returns None (anonymous access).

    Raises:
        HTTPException 401: Missing or invalid access token
        HTTPException 503: Supabase credentials not configured
    """
    if not settings.auth_enabled:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Missing access token. Provide "
            "'Authorization: Bearer <token>' header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await verify_access_token(credentials.credentials)
    except AuthNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired access token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Read by the request logging middleware
    request.state.user_id = user.id
    return user


def get_user_id(user: AuthenticatedUser | None = Depends(get_current_user)) -> str:
    """The acting user's id; the configured dev user when auth is disabled."""
    return user.id if user is not None else settings.dev_user_id


def ensure_same_user(user: AuthenticatedUser | None, user_id: str | None) -> None:
    """
    Refuse to act on another user's account.

    No-op when auth is disabled or no user id was supplied.

    Raises:
        HTTPException 403: `user_id` is not the authenticated user.
    """
    if user is None or not user_id:
        return
    if user.id != user_id:
        logger.warning("User %s attempted to act on account %s", user.id, user_id)
        raise HTTPException(
            status_code=403,
            detail="You can only manage your own account.",
        )


async def enforce_pipeline_limits(
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> Profile | None:
    """
    Gate a pipeline call (transcribe / clean / tags) for the current user.

    Returns the user's profile (so the route can record usage on it), or
    None when auth is disabled.

    Raises:
        HTTPException 429: Rate limit exceeded
        HTTPException 402: Monthly usage limit already reached
    """
    if user is None:
        return None

    await check_rate_limit(user.id)

    profile = await get_or_create_profile(session, user.id, email=user.email)
    summary = summarize(profile)
    if summary.limit_reached:
        logger.info(
            "Usage limit reached: user=%s tier=%s tokens=%d minutes=%.1f",
            user.id, summary.tier, summary.tokens_used, summary.minutes_used,
        )
        raise HTTPException(
            status_code=402,
            detail={
                "error": "Monthly usage limit reached. Upgrade your plan to continue.",
                "tier": summary.tier,
                "tokens_used": summary.tokens_used,
                "token_limit": summary.token_limit,
                "minutes_used": summary.minutes_used,
                "minute_limit": summary.minute_limit,
            },
        )
    return profile
