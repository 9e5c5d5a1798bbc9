# =============================================================================
# Exception Handlers — uniform {"error": ...} bodies
# =============================================================================
#
# The SPA reads `error` (and sometimes `details`) from every failed
# response, so FastAPI's default {"detail": ...} shape is replaced:
#
#   HTTPException(detail="msg")        → {"error": "msg"}
#   HTTPException(detail={...})        → {...} verbatim
#   RequestValidationError             → 400 {"error": "Invalid request",
#                                             "details": [...]}
#   anything else                      → 500 {"error": "Internal server error"}
# =============================================================================

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    logger.info("Invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"error": "Invalid request", "details": exc.errors()}),
    )


async def unhandled_exception_handler(
    request: Request, exc: Exception,
) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
