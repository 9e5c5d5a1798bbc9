# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API, i.e. the
# contract with the SPA. Field names follow what the SPA already reads:
# snake_case for the pipeline (cleaned_text, original_length) and
# camelCase for billing (sessionId, hasSubscription). camelCase fields are
# declared with an alias; FastAPI serialises response models by alias.
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

_camel = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    details: object | None = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    services: dict[str, bool] = Field(
        description="Which upstream integrations have credentials configured",
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TranscribeResponse(BaseModel):
    """Response for POST /api/transcribe."""

    transcript: str
    duration_seconds: float | None = None
    converted: bool = Field(
        default=False, description="True if ffmpeg re-encoded the upload",
    )


class CleanResponse(BaseModel):
    """
    Response for POST /api/clean.

    `cleaned_text` is always usable: when cleaning did not run, it is the
    original transcript and `reason` says why.
    """

    cleaned_text: str
    cleaned: bool
    reason: str | None = None
    original_length: int
    cleaned_length: int


class TagsResponse(BaseModel):
    tags: list[str]


# ---------------------------------------------------------------------------
# Thoughts
# ---------------------------------------------------------------------------


class ThoughtResponse(BaseModel):
    id: str
    user_id: str
    raw_transcript: str
    cleaned_text: str | None = None
    tags: list[str] = []
    category: str | None = None
    title: str | None = None
    source: str = "voice"
    tokens_used: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThoughtListResponse(BaseModel):
    thoughts: list[ThoughtResponse]
    total: int


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


class UsageResponse(BaseModel):
    """Response for GET /api/usage. Limits are null for unlimited tiers."""

    tier: str
    tracked: bool
    tokens_used: int
    token_limit: int | None = None
    tokens_remaining: int | None = None
    minutes_used: float
    minute_limit: int | None = None
    minutes_remaining: float | None = None
    limit_reached: bool
    period_start: datetime | None = None


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    url: str | None = None

    model_config = _camel


class PortalSessionResponse(BaseModel):
    url: str


class VerifySessionResponse(BaseModel):
    success: bool
    tier: str | None = None
    customer_id: str | None = Field(default=None, alias="customerId")
    subscription_id: str | None = Field(default=None, alias="subscriptionId")

    model_config = _camel


class SubscriptionStatusResponse(BaseModel):
    has_subscription: bool = Field(alias="hasSubscription")
    customer_id: str | None = Field(default=None, alias="customerId")
    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    status: str | None = None
    tier: str | None = None

    model_config = _camel


class WebhookResponse(BaseModel):
    received: bool = True
    duplicate: bool = False


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


class LanguageItem(BaseModel):
    code: str
    name: str


class LanguagesResponse(BaseModel):
    languages: list[LanguageItem]


class TranslateResponse(BaseModel):
    translated_text: str = Field(alias="translatedText")
    target_lang: str = Field(alias="targetLang")

    model_config = _camel


class DetectLanguageResponse(BaseModel):
    language: str
