# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, session management, and ORM models.
#
# Key exports:
#   - get_async_session: FastAPI dependency for database sessions
#   - Base: SQLAlchemy declarative base for ORM models
#   - Profile, Thought, StripeEvent: ORM models
# =============================================================================
