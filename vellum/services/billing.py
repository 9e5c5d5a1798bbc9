# =============================================================================
# Billing Service — Stripe Checkout, Portal, and Subscription Sync
# =============================================================================
#
# Thin async wrappers around the `stripe` library plus the logic that keeps
# profile rows in step with Stripe.
#
# The stripe library is synchronous; every call is pushed onto the
# threadpool so a slow Stripe round-trip never blocks the event loop.
# The secret key is passed per call (api_key=...) instead of being set on
# the global `stripe.api_key`, which keeps tests free of global state.
#
# SUBSCRIPTION SYNC — three entry points update a profile:
#
#   verify-session (SPA returns from Checkout) ─┐
#   webhook checkout.session.completed ─────────┼─▶ activate_subscription()
#   webhook customer.subscription.updated ──────┘      tier, ids, status
#   webhook customer.subscription.deleted ─────────▶ downgrade to trial
#
# Webhooks are idempotent: each processed event id is stored in
# stripe_events and a redelivery is acknowledged without re-applying it.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import stripe
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.config import settings
from vellum.db.models import Profile, StripeEvent
from vellum.services import tiers
from vellum.services.errors import BillingNotConfiguredError
from vellum.services.usage import get_or_create_profile

logger = logging.getLogger(__name__)

# Subscription states that grant the paid tier
ACTIVE_STATUSES = {"active", "trialing", "past_due"}

HANDLED_EVENTS = {
    "checkout.session.completed",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}


def _api_key() -> str:
    if not settings.stripe_configured:
        raise BillingNotConfiguredError("Stripe is not configured")
    return settings.stripe_secret_key


def stripe_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _id_of(value: Any) -> str | None:
    """Stripe fields may hold an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return stripe_field(value, "id")


# ---------------------------------------------------------------------------
# Stripe API wrappers
# ---------------------------------------------------------------------------


def build_checkout_params(
    user_id: str,
    email: str,
    plan: tiers.TierPlan,
    origin: str,
    customer_id: str | None = None,
) -> dict[str, Any]:
    """Build the Checkout Session parameters for a monthly subscription."""
    params: dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": plan.product_name,
                        "description": plan.description,
                    },
                    "recurring": {"interval": "month"},
                    "unit_amount": plan.unit_amount_cents,
                },
                "quantity": 1,
            },
        ],
        "mode": "subscription",
        "success_url": f"{origin}/settings?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/settings",
        "metadata": {"userId": user_id, "tier": plan.name},
        "subscription_data": {"metadata": {"userId": user_id, "tier": plan.name}},
    }
    # An existing customer keeps one Stripe customer per user across upgrades
    if customer_id:
        params["customer"] = customer_id
    else:
        params["customer_email"] = email
    return params


async def create_checkout_session(
    user_id: str,
    email: str,
    tier: str | None,
    origin: str,
    customer_id: str | None = None,
) -> Any:
    """
    Create a Stripe Checkout Session for `tier`.

    Raises:
        BillingNotConfiguredError: No Stripe secret key.
        stripe.StripeError: Stripe rejected the request.
    """
    api_key = _api_key()
    plan = tiers.checkout_plan(tier)
    params = build_checkout_params(user_id, email, plan, origin, customer_id)

    session = await run_in_threadpool(
        stripe.checkout.Session.create, api_key=api_key, **params,
    )
    logger.info(
        "Checkout session created: id=%s, user=%s, tier=%s, amount=%d",
        stripe_field(session, "id"), user_id, plan.name, plan.unit_amount_cents,
    )
    return session


async def create_portal_session(customer_id: str, return_url: str) -> Any:
    api_key = _api_key()
    return await run_in_threadpool(
        stripe.billing_portal.Session.create,
        api_key=api_key,
        customer=customer_id,
        return_url=return_url,
    )


async def retrieve_checkout_session(session_id: str) -> Any:
    api_key = _api_key()
    return await run_in_threadpool(
        stripe.checkout.Session.retrieve, session_id, api_key=api_key,
    )


async def retrieve_subscription(subscription_id: str) -> Any:
    api_key = _api_key()
    return await run_in_threadpool(
        stripe.Subscription.retrieve, subscription_id, api_key=api_key,
    )


async def cancel_subscription(subscription_id: str) -> Any:
    api_key = _api_key()
    subscription = await run_in_threadpool(
        stripe.Subscription.cancel, subscription_id, api_key=api_key,
    )
    logger.info("Subscription cancelled: id=%s", subscription_id)
    return subscription


def construct_webhook_event(payload: bytes, signature: str | None) -> Any:
    """
    Verify a webhook payload against the endpoint secret.

    Raises:
        BillingNotConfiguredError: No secret key or no webhook secret.
        ValueError: Payload is not valid JSON.
        stripe.SignatureVerificationError: Signature missing or wrong.
    """
    api_key = _api_key()
    if not settings.stripe_webhook_secret:
        raise BillingNotConfiguredError("Stripe webhook secret is not configured")
    return stripe.Webhook.construct_event(
        payload, signature or "", settings.stripe_webhook_secret,
        api_key=api_key,
    )


# ---------------------------------------------------------------------------
# Profile synchronisation
# ---------------------------------------------------------------------------


async def find_profile_by_customer(
    session: AsyncSession, customer_id: str | None,
) -> Profile | None:
    if not customer_id:
        return None
    stmt = select(Profile).where(Profile.stripe_customer_id == customer_id)
    result = await session.execute(stmt)
    return result.scalars().first()


def _paid_tier(requested: str | None, current: str | None) -> str:
    """Tier granted by an active subscription."""
    if requested:
        return tiers.checkout_plan(requested).name
    if current and tiers.get_plan(current).purchasable:
        return current
    return tiers.DEFAULT_CHECKOUT_TIER


def activate_subscription(
    profile: Profile,
    tier: str | None,
    customer_id: str | None,
    subscription_id: str | None,
    status: str | None = "active",
) -> None:
    """Store Stripe ids on the profile and grant the paid tier if active."""
    if customer_id:
        profile.stripe_customer_id = customer_id
    if subscription_id:
        profile.stripe_subscription_id = subscription_id
    profile.subscription_status = status

    if status in ACTIVE_STATUSES:
        profile.tier = _paid_tier(tier, profile.tier)
    else:
        profile.tier = tiers.DEFAULT_TIER


def downgrade_profile(profile: Profile, status: str | None = "canceled") -> None:
    profile.tier = tiers.DEFAULT_TIER
    profile.stripe_subscription_id = None
    profile.subscription_status = status


def sync_subscription(profile: Profile, subscription: Any) -> None:
    """Mirror a Stripe Subscription object onto `profile`."""
    status = stripe_field(subscription, "status")
    if status == "canceled":
        downgrade_profile(profile, status)
        return
    metadata = stripe_field(subscription, "metadata") or {}
    activate_subscription(
        profile,
        tier=stripe_field(metadata, "tier"),
        customer_id=_id_of(stripe_field(subscription, "customer")),
        subscription_id=stripe_field(subscription, "id"),
        status=status,
    )


def checkout_session_is_paid(checkout_session: Any) -> bool:
    return (
        stripe_field(checkout_session, "status") == "complete"
        and stripe_field(checkout_session, "payment_status")
        in ("paid", "no_payment_required")
    )


async def apply_checkout_session(
    session: AsyncSession, checkout_session: Any,
) -> Profile | None:
    """
    Upgrade the profile named in a completed Checkout Session's metadata.

    Returns the updated profile, or None when the session is unpaid or has
    no userId.
    """
    if not checkout_session_is_paid(checkout_session):
        return None

    metadata = stripe_field(checkout_session, "metadata") or {}
    user_id = stripe_field(metadata, "userId")
    if not user_id:
        logger.warning(
            "Checkout session %s has no userId metadata",
            stripe_field(checkout_session, "id"),
        )
        return None

    profile = await get_or_create_profile(
        session, user_id, email=stripe_field(checkout_session, "customer_email"),
    )
    activate_subscription(
        profile,
        tier=stripe_field(metadata, "tier"),
        customer_id=_id_of(stripe_field(checkout_session, "customer")),
        subscription_id=_id_of(stripe_field(checkout_session, "subscription")),
    )
    logger.info("Profile %s upgraded to %s", user_id, profile.tier)
    return profile


async def apply_subscription_change(
    session: AsyncSession, subscription: Any, deleted: bool = False,
) -> Profile | None:
    """Mirror a subscription update/deletion onto its owner's profile."""
    metadata = stripe_field(subscription, "metadata") or {}
    customer_id = _id_of(stripe_field(subscription, "customer"))

    user_id = stripe_field(metadata, "userId")
    profile = await session.get(Profile, user_id) if user_id else None
    if profile is None:
        profile = await find_profile_by_customer(session, customer_id)
    if profile is None:
        logger.warning(
            "No profile for subscription %s (customer %s)",
            stripe_field(subscription, "id"), customer_id,
        )
        return None

    if deleted:
        downgrade_profile(profile, stripe_field(subscription, "status") or "canceled")
    else:
        sync_subscription(profile, subscription)
    logger.info(
        "Profile %s subscription %s → tier=%s",
        profile.id, profile.subscription_status, profile.tier,
    )
    return profile


async def handle_webhook_event(session: AsyncSession, event: Any) -> bool:
    """
    Apply a verified webhook event once.

    Returns False when the event id was already processed.
    """
    event_id = stripe_field(event, "id")
    event_type = stripe_field(event, "type")

    if event_id and await session.get(StripeEvent, event_id) is not None:
        logger.info("Skipping duplicate Stripe event %s (%s)", event_id, event_type)
        return False

    if event_type not in HANDLED_EVENTS:
        logger.debug("Ignoring Stripe event type %s", event_type)
        return True

    data_object = stripe_field(stripe_field(event, "data"), "object")
    if event_type == "checkout.session.completed":
        await apply_checkout_session(session, data_object)
    else:
        await apply_subscription_change(
            session,
            data_object,
            deleted=event_type == "customer.subscription.deleted",
        )

    if event_id:
        session.add(StripeEvent(event_id=event_id, event_type=event_type))
        await session.flush()
    return True
