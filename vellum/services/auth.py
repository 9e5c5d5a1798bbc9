# =============================================================================
# Auth Service — Supabase Access Token Verification
# =============================================================================
#
# The SPA signs users in with Supabase Auth and sends the session's access
# token as `Authorization: Bearer <jwt>`. This module asks Supabase who the
# token belongs to. No FastAPI dependency here; the request-level wiring
# lives in vellum/api/deps.py.
#
# DESIGN DECISION: verify through `auth.get_user(jwt)` instead of checking
# the JWT signature locally. It costs one round-trip but also rejects
# tokens for users that have since been deleted or signed out.
#
# The supabase client is synchronous; callers in async code go through
# the threadpool.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool
from supabase import Client, create_client

from vellum.config import settings
from vellum.services.errors import AuthNotConfiguredError

logger = logging.getLogger(__name__)

_client: Client | None = None


@dataclass
class AuthenticatedUser:
    """The user behind a verified access token."""

    id: str
    email: str | None = None


def get_supabase_client() -> Client:
    """
    Lazily create and cache the service-role Supabase client.

    Raises:
        AuthNotConfiguredError: SUPABASE_URL or the service-role key is unset.
    """
    global _client
    if not settings.supabase_configured:
        raise AuthNotConfiguredError("Supabase is not configured")
    if _client is None:
        _client = create_client(
            settings.supabase_url, settings.supabase_service_role_key,
        )
    return _client


async def verify_access_token(token: str) -> AuthenticatedUser | None:
    """
    Resolve a Supabase access token to its user.

    Returns None when the token is invalid or expired.

    Raises:
        AuthNotConfiguredError: Supabase is not configured.
    """
    client = get_supabase_client()
    try:
        response = await run_in_threadpool(client.auth.get_user, token)
    except Exception as e:
        logger.info("Access token rejected: %s", e)
        return None

    user = getattr(response, "user", None) if response else None
    if user is None:
        return None
    return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))


async def delete_auth_user(user_id: str) -> None:
    """
    Remove the Supabase auth user (admin API).

    Raises:
        AuthNotConfiguredError: Supabase is not configured.
    """
    client = get_supabase_client()
    await run_in_threadpool(client.auth.admin.delete_user, user_id)
    logger.info("Supabase auth user deleted: id=%s", user_id)
