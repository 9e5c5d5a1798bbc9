# =============================================================================
# Application Factory — FastAPI app + uvicorn entry point
# =============================================================================
#
# Wires configuration, logging, middleware, exception handlers and the
# feature routers into one FastAPI app. Every router is mounted under /api,
# which is the prefix the SPA's dev proxy forwards.
#
# Run locally:
#   uvicorn vellum.main:app --reload --port 3001
#   python -m vellum.main
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vellum.api import billing, clean, health, tags, thoughts, transcribe, translate, usage
from vellum.api.errors import register_exception_handlers
from vellum.api.middleware import RequestLoggingMiddleware
from vellum.config import settings
from vellum.db.engine import create_tables, dispose_engine
from vellum.services.rate_limiter import close_rate_limit_redis

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def _lifespan(application: FastAPI):
    """Create tables (local databases only) on startup, release pools on shutdown."""
    logger.info(
        "Starting %s v%s (auth=%s, stripe=%s)",
        settings.app_name, settings.app_version,
        settings.auth_enabled, settings.stripe_configured,
    )
    if settings.create_tables:
        await create_tables()
    yield
    await close_rate_limit_redis()
    await dispose_engine()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Backend for the Vellum voice journal: transcription, cleaning, "
            "tagging, saved thoughts, usage limits and Stripe billing."
        ),
        lifespan=_lifespan,
    )

    # Middleware (last added = first executed)
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    for module in (health, transcribe, clean, tags, thoughts, usage, billing, translate):
        application.include_router(module.router, prefix=API_PREFIX)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run("vellum.main:app", host="0.0.0.0", port=settings.port)
