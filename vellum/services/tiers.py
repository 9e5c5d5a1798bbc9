# =============================================================================
# Subscription Tier Registry — Plans, Prices, and Usage Limits
# =============================================================================
#
# Maps tier name → plan definition. Used by the Stripe checkout endpoint to
# build `price_data` and by the usage service to decide which limits apply.
#
#   Tier        Price        Monthly limit          Tracked
#   ─────────   ──────────   ────────────────────   ───────
#   trial       free         25,000 tokens          yes
#   apprentice  $5 / month   300 audio minutes      yes
#   pro         $12 / month  unlimited              no
#   sovereign   not sold     unlimited              no
#
# Prices are in cents (Stripe's `unit_amount`). The token and minute caps
# are read from settings so they can be tuned per deployment.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from vellum.config import settings

TRIAL = "trial"
APPRENTICE = "apprentice"
PRO = "pro"
SOVEREIGN = "sovereign"

DEFAULT_TIER = TRIAL
DEFAULT_CHECKOUT_TIER = PRO


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TierPlan:
    """A subscription plan."""

    name: str
    product_name: str
    description: str
    unit_amount_cents: int | None  # None → not purchasable via checkout
    tracks_usage: bool
    limit_kind: str | None = None  # "tokens", "minutes", or None (unlimited)

    @property
    def purchasable(self) -> bool:
        return self.unit_amount_cents is not None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TIER_REGISTRY: dict[str, TierPlan] = {
    TRIAL: TierPlan(
        name=TRIAL,
        product_name="Axiom Trial",
        description="25,000 tokens per month",
        unit_amount_cents=None,
        tracks_usage=True,
        limit_kind="tokens",
    ),
    APPRENTICE: TierPlan(
        name=APPRENTICE,
        product_name="Axiom Apprentice",
        description="300 minutes per month",
        unit_amount_cents=500,
        tracks_usage=True,
        limit_kind="minutes",
    ),
    PRO: TierPlan(
        name=PRO,
        product_name="Axiom Notary Pro",
        description="Unlimited notarizations",
        unit_amount_cents=1200,
        tracks_usage=False,
    ),
    SOVEREIGN: TierPlan(
        name=SOVEREIGN,
        product_name="Axiom Sovereign",
        description="Unlimited everything",
        unit_amount_cents=None,
        tracks_usage=False,
    ),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_plan(tier: str | None) -> TierPlan:
    """Look up a plan, falling back to the trial plan for unknown tiers."""
    return TIER_REGISTRY.get(tier or DEFAULT_TIER, TIER_REGISTRY[DEFAULT_TIER])


def checkout_plan(tier: str | None) -> TierPlan:
    """
    Resolve the plan sold for a checkout request.

    Only apprentice is sold explicitly; every other value (including None)
    buys pro, matching the "Upgrade to Pro" default in the settings page.
    """
    if tier == APPRENTICE:
        return TIER_REGISTRY[APPRENTICE]
    return TIER_REGISTRY[DEFAULT_CHECKOUT_TIER]


def should_track_usage(tier: str | None) -> bool:
    return get_plan(tier).tracks_usage


def token_limit(tier: str | None) -> int | None:
    """Monthly token cap, or None when the tier is not token-limited."""
    if get_plan(tier).limit_kind == "tokens":
        return settings.free_tier_token_limit
    return None


def minute_limit(tier: str | None) -> int | None:
    """Monthly audio-minute cap, or None when the tier is not minute-limited."""
    if get_plan(tier).limit_kind == "minutes":
        return settings.apprentice_minute_limit
    return None
