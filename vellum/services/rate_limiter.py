# =============================================================================
# Rate Limiter — Redis Sliding Window per User and Scope
# =============================================================================
#
# Every pipeline call (transcribe / clean / tags) spends money at an
# upstream provider, so each user gets a per-minute budget.
#
# ALGORITHM (one Redis pipeline round-trip):
#   ZREMRANGEBYSCORE key 0 now-60   drop requests older than the window
#   ZCARD key                       requests still inside the window
#   ZADD key {member: now}          record this request
#   EXPIRE key 70                   idle keys clean themselves up
#
# Members carry a random suffix so two requests in the same microsecond
# are both counted.
#
# Keys: ratelimit:<scope>:<user_id>. Scope "pipeline" is shared by the
# three pipeline routes.
#
# If Redis is unavailable the check is skipped with a warning and the
# request goes through.
# =============================================================================

from __future__ import annotations

import logging
import time
import uuid

from fastapi import HTTPException

from vellum.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
DEFAULT_SCOPE = "pipeline"

_redis_client = None


def _get_rate_limit_redis():
    """Lazily create and cache the async Redis client for rate limiting."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


def rate_limit_key(user_id: str, scope: str = DEFAULT_SCOPE) -> str:
    return f"ratelimit:{scope}:{user_id}"


async def check_rate_limit(
    user_id: str | None,
    scope: str = DEFAULT_SCOPE,
    limit: int | None = None,
) -> int | None:
    """
    Count this request against the user's per-minute budget.

    Returns the number of requests left in the current window, or None
    when limiting was skipped (disabled, no user, Redis unavailable).

    Raises:
        HTTPException 429: Budget exhausted. Carries a Retry-After header.
    """
    if not settings.rate_limit_enabled or not user_id:
        return None

    limit = limit or settings.rate_limit_rpm
    key = rate_limit_key(user_id, scope)
    now = time.time()

    try:
        pipe = _get_rate_limit_redis().pipeline()
        pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
        pipe.zcard(key)
        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        pipe.expire(key, WINDOW_SECONDS + 10)
        _, in_window, _, _ = await pipe.execute()
    except Exception as e:
        logger.warning(
            "Rate limiter unavailable (Redis error): %s. Allowing request through.",
            e,
        )
        return None

    if in_window >= limit:
        logger.info("Rate limit hit: user=%s scope=%s limit=%d", user_id, scope, limit)
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Limit: {limit} requests/minute.",
            headers={"Retry-After": str(WINDOW_SECONDS)},
        )
    return limit - in_window - 1


async def close_rate_limit_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
