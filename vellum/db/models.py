# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# These models mirror the tables in the Supabase Postgres database.
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────────────┐       ┌──────────────────────────────────┐
# │  profiles                │       │  thoughts                        │
# ├──────────────────────────┤       ├──────────────────────────────────┤
# │ id (PK, = auth user id)  │──1:N─▶│ id (PK, uuid)                    │
# │ email                    │       │ user_id (FK → profiles.id)       │
# │ tier                     │       │ raw_transcript (text)            │
# │ stripe_customer_id       │       │ cleaned_text (text)              │
# │ stripe_subscription_id   │       │ tags (text[])                    │
# │ subscription_status      │       │ category / title / source        │
# │ tokens_used              │       │ tokens_used                      │
# │ minutes_used             │       │ created_at / updated_at          │
# │ usage_period_start       │       └──────────────────────────────────┘
# │ created_at / updated_at  │
# └──────────────────────────┘       ┌──────────────────────────────────┐
#                                    │  stripe_events                   │
#                                    ├──────────────────────────────────┤
#                                    │ event_id (PK, evt_*)             │
#                                    │ event_type / received_at         │
#                                    └──────────────────────────────────┘
#
# Ownership: every thought belongs to exactly one profile. All thought
# queries in the service layer filter on user_id.
#
# stripe_events records processed webhook ids so redelivered events are
# acknowledged without being applied twice.
# =============================================================================

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class. All ORM models inherit from this."""

    pass


def _new_uuid() -> str:
    return str(uuid.uuid4())


def is_valid_id(value: object) -> bool:
    """True when `value` parses as a UUID, the type of every id column."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class Profile(Base):
    """
    Per-user billing and usage record.

    The primary key is the Supabase auth user id, so a profile row is
    addressable straight from a verified access token.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Subscription tier: trial / apprentice / pro / sovereign
    tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default="trial", server_default="trial",
    )

    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Mirrors Stripe: active | trialing | past_due | canceled | unpaid | ...
    subscription_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Usage counters for the current monthly period
    tokens_used: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    minutes_used: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default="0",
    )
    usage_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    thoughts: Mapped[list["Thought"]] = relationship(
        "Thought",
        back_populates="profile",
        cascade="all, delete-orphan",
        lazy="select",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_profiles_stripe_customer_id", "stripe_customer_id"),
        Index("ix_profiles_stripe_subscription_id", "stripe_subscription_id"),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, tier='{self.tier}')>"


class Thought(Base):
    """A saved voice (or typed) note."""

    __tablename__ = "thoughts"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=_new_uuid,
    )
    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Whisper output, exactly as transcribed (or exactly as typed)
    raw_transcript: Mapped[str] = mapped_column(Text, nullable=False)
    # LLM-cleaned version; null when cleaning never ran
    cleaned_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, default=list, server_default="{}",
    )
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # "voice" (recorded) or "typed"
    source: Mapped[str] = mapped_column(
        String(10), nullable=False, default="voice", server_default="voice",
    )
    # Estimated tokens this thought cost to produce
    tokens_used: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="thoughts")

    __table_args__ = (
        Index("ix_thoughts_user_id_created_at", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Thought(id={self.id}, user_id={self.user_id})>"


class StripeEvent(Base):
    """Processed Stripe webhook events (idempotency guard)."""

    __tablename__ = "stripe_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StripeEvent(event_id='{self.event_id}', type='{self.event_type}')>"
