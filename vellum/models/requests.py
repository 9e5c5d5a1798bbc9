# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
#
# Required-looking fields (transcript, text, userId, ...) are declared
# Optional on purpose: the SPA expects a 400 with a specific message
# ("No transcript provided", "userId and email are required") rather than
# a generic validation error, so presence is checked in the route handler.
#
# The billing endpoints speak camelCase (userId, customerId, sessionId) to
# match the SPA. Fields use snake_case in Python with a camelCase alias;
# populate_by_name lets tests build them either way.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

_camel = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class CleanRequest(BaseModel):
    """
    Request body for POST /api/clean.

    Example:
        {"transcript": "so um I was thinking uh we should ship it"}
    """

    transcript: str | None = Field(
        default=None,
        description="Raw transcript to clean",
        examples=["so um I was thinking uh we should ship it"],
    )


class TagsRequest(BaseModel):
    """Request body for POST /api/tags."""

    text: str | None = Field(
        default=None,
        description="Text to extract tags from (usually the cleaned transcript)",
    )


# ---------------------------------------------------------------------------
# Thoughts
# ---------------------------------------------------------------------------


class CreateThoughtRequest(BaseModel):
    """Request body for POST /api/thoughts."""

    raw_transcript: str = Field(..., min_length=1, max_length=100_000)
    cleaned_text: str | None = Field(default=None, max_length=100_000)
    tags: list[str] = Field(default_factory=list, max_length=20)
    category: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=200)
    source: Literal["voice", "typed"] = "voice"


class UpdateThoughtRequest(BaseModel):
    """Request body for PATCH /api/thoughts/{id}. Omitted fields are left alone."""

    title: str | None = Field(default=None, max_length=200)
    cleaned_text: str | None = Field(default=None, max_length=100_000)
    tags: list[str] | None = Field(default=None, max_length=20)
    category: str | None = Field(default=None, max_length=50)


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class CheckoutSessionRequest(BaseModel):
    """
    Request body for POST /api/stripe/create-checkout-session.

    Example:
        {"userId": "a1b2...", "email": "ada@example.com", "tier": "apprentice"}
    """

    user_id: str | None = Field(default=None, alias="userId")
    email: str | None = None
    tier: str | None = Field(
        default=None,
        description="'apprentice' or 'pro'. Anything else buys pro.",
    )

    model_config = _camel


class PortalSessionRequest(BaseModel):
    customer_id: str | None = Field(default=None, alias="customerId")

    model_config = _camel


class VerifySessionRequest(BaseModel):
    session_id: str | None = Field(default=None, alias="sessionId")

    model_config = _camel


class DeleteAccountRequest(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")

    model_config = _camel


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


class TranslateRequest(BaseModel):
    text: str | None = None
    target_lang: str = Field(default="en", alias="targetLang")

    model_config = _camel


class DetectLanguageRequest(BaseModel):
    text: str | None = None
