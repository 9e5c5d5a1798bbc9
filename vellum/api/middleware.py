# =============================================================================
# Request Logging Middleware
# =============================================================================
#
# Logs one line per API request: method, path, status, latency, and the
# acting user when the auth dependency resolved one. Tags the request with
# a short id (request.state.request_id, echoed as X-Request-ID) so the
# provider logs for one recording can be grepped together.
#
# DESIGN DECISION: Starlette middleware (not a FastAPI dependency) because
# it wraps the ENTIRE request lifecycle, so the final status code and the
# full latency are both visible, and no endpoint has to opt in.
#
# Logging failures never affect the response.
# =============================================================================

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import (
    BaseHTTPMiddleware,
    RequestResponseEndpoint,
)
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Endpoints to skip (health check, docs)
_SKIP_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for the API, with a per-request id."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start_time = time.monotonic()
        response = await call_next(request)
        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        try:
            response.headers["X-Request-ID"] = request_id
            user_id = getattr(request.state, "user_id", None)
            logger.info(
                "%s %s → %d (%dms) request_id=%s user=%s",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                request_id,
                user_id or "-",
            )
        except Exception as e:
            logger.warning("Failed to log request: %s", e)

        return response
