# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine over asyncpg, pointed at the Supabase Postgres
# database.
#
# SESSION LIFECYCLE:
# 1. FastAPI request arrives
# 2. `get_async_session` dependency creates a new session
# 3. Route handler uses session for DB operations
# 4. Session auto-commits on exit and is closed when the request completes
# 5. On exception, the transaction is rolled back
#
# COMMIT POLICY:
# 1. Dependency-injected (get_async_session via Depends):
#    Auto-commits when the request handler returns. Handlers call
#    session.flush() when they need generated values (ids, server defaults)
#    before returning.
#
# 2. Self-managed (async_session_factory() directly):
#    Used outside the request lifecycle (startup table creation).
#    These MUST commit explicitly.
# =============================================================================

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from vellum.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo: logs every SQL statement in debug mode.
# - pool_pre_ping: Supabase's pooler drops idle connections; pre-ping
#   replaces dead ones instead of failing the next request.
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
)

# ---------------------------------------------------------------------------
# Session Factory
# ---------------------------------------------------------------------------
# expire_on_commit=False: attributes stay readable after commit, which async
# sessions need (lazy refresh outside the session would fail).
# ---------------------------------------------------------------------------
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The session is committed when the handler returns, rolled back if it
    raises, and always closed.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create all tables that do not exist yet (local development only)."""
    from vellum.db.models import Base

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_engine() -> None:
    await async_engine.dispose()
