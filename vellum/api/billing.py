# =============================================================================
# Stripe API — Checkout, Customer Portal, Webhooks, Account Deletion
# =============================================================================
#
# ENDPOINTS (all under /api/stripe):
#   POST /create-checkout-session      start a monthly subscription
#   POST /create-portal-session        manage / cancel via Stripe's portal
#   POST /verify-session               SPA returns from Checkout → upgrade
#   POST /webhook                      Stripe → us (signature-verified)
#   GET  /subscription-status/{id}     current subscription for a user
#   POST /delete-account               cancel billing, erase all user data
#
# Stripe not configured → 503 {"error": "Stripe is not configured"} except
# for subscription-status (reports "no subscription") and delete-account
# (still erases the data).
#
# Stripe API failures → 500 {"error": <Stripe's message>}.
# =============================================================================

from __future__ import annotations

import logging
from typing import NoReturn

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vellum.api.deps import ensure_same_user, get_current_user
from vellum.config import settings
from vellum.db.engine import get_async_session
from vellum.db.models import Profile, is_valid_id
from vellum.models.requests import (
    CheckoutSessionRequest,
    DeleteAccountRequest,
    PortalSessionRequest,
    VerifySessionRequest,
)
from vellum.models.responses import (
    CheckoutSessionResponse,
    PortalSessionResponse,
    SubscriptionStatusResponse,
    SuccessResponse,
    VerifySessionResponse,
    WebhookResponse,
)
from vellum.services import billing
from vellum.services import thoughts as thought_store
from vellum.services.auth import AuthenticatedUser, delete_auth_user
from vellum.services.errors import AuthNotConfiguredError, BillingNotConfiguredError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["Billing"])

NOT_CONFIGURED = "Stripe is not configured"


def _require_stripe() -> None:
    if not settings.stripe_configured:
        raise HTTPException(status_code=503, detail=NOT_CONFIGURED)


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.frontend_url).rstrip("/")


def _require_valid_user_id(user_id: str) -> None:
    if not is_valid_id(user_id):
        raise HTTPException(status_code=400, detail="Invalid userId")


def _raise_stripe_error(action: str, e: Exception) -> NoReturn:
    if isinstance(e, BillingNotConfiguredError):
        raise HTTPException(status_code=503, detail=str(e)) from e
    logger.error("Error %s: %s", action, e)
    message = getattr(e, "user_message", None) or str(e)
    raise HTTPException(status_code=500, detail=message) from e


# ---------------------------------------------------------------------------
# POST /api/stripe/create-checkout-session
# ---------------------------------------------------------------------------


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create a Stripe Checkout Session",
    description=(
        "tier='apprentice' buys Axiom Apprentice ($5/month, 300 minutes); "
        "any other value buys Axiom Notary Pro ($12/month, unlimited)."
    ),
)
async def create_checkout_session(
    body: CheckoutSessionRequest,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> CheckoutSessionResponse:
    _require_stripe()
    if not body.user_id or not body.email:
        raise HTTPException(status_code=400, detail="userId and email are required")
    _require_valid_user_id(body.user_id)
    ensure_same_user(user, body.user_id)

    profile = await session.get(Profile, body.user_id)
    customer_id = profile.stripe_customer_id if profile else None

    try:
        checkout = await billing.create_checkout_session(
            user_id=body.user_id,
            email=body.email,
            tier=body.tier,
            origin=_origin(request),
            customer_id=customer_id,
        )
    except (stripe.StripeError, BillingNotConfiguredError) as e:
        _raise_stripe_error("creating checkout session", e)

    return CheckoutSessionResponse(
        session_id=billing.stripe_field(checkout, "id"),
        url=billing.stripe_field(checkout, "url"),
    )


# ---------------------------------------------------------------------------
# POST /api/stripe/create-portal-session
# ---------------------------------------------------------------------------


@router.post(
    "/create-portal-session",
    response_model=PortalSessionResponse,
    summary="Create a Stripe Customer Portal session",
)
async def create_portal_session(
    body: PortalSessionRequest,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> PortalSessionResponse:
    _require_stripe()
    if not body.customer_id:
        raise HTTPException(status_code=400, detail="customerId is required")

    if user is not None:
        profile = await session.get(Profile, user.id)
        if profile is None or profile.stripe_customer_id != body.customer_id:
            raise HTTPException(
                status_code=403,
                detail="You can only manage your own account.",
            )

    try:
        portal = await billing.create_portal_session(
            body.customer_id, return_url=f"{_origin(request)}/settings",
        )
    except (stripe.StripeError, BillingNotConfiguredError) as e:
        _raise_stripe_error("creating portal session", e)

    return PortalSessionResponse(url=billing.stripe_field(portal, "url"))


# ---------------------------------------------------------------------------
# POST /api/stripe/verify-session
# ---------------------------------------------------------------------------


@router.post(
    "/verify-session",
    response_model=VerifySessionResponse,
    summary="Confirm a finished Checkout Session and upgrade the profile",
)
async def verify_session(
    body: VerifySessionRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> VerifySessionResponse:
    _require_stripe()
    if not body.session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")

    try:
        checkout = await billing.retrieve_checkout_session(body.session_id)
    except (stripe.StripeError, BillingNotConfiguredError) as e:
        _raise_stripe_error("verifying checkout session", e)

    metadata = billing.stripe_field(checkout, "metadata") or {}
    ensure_same_user(user, billing.stripe_field(metadata, "userId"))

    profile = await billing.apply_checkout_session(session, checkout)
    if profile is None:
        return VerifySessionResponse(success=False)

    return VerifySessionResponse(
        success=True,
        tier=profile.tier,
        customer_id=profile.stripe_customer_id,
        subscription_id=profile.stripe_subscription_id,
    )


# ---------------------------------------------------------------------------
# POST /api/stripe/webhook
# ---------------------------------------------------------------------------


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Stripe webhook receiver",
    description=(
        "Handles checkout.session.completed, customer.subscription.updated "
        "and customer.subscription.deleted. Requires a valid "
        "Stripe-Signature header. Redelivered events are acknowledged "
        "without being applied twice."
    ),
)
async def stripe_webhook(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> WebhookResponse:
    _require_stripe()

    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = billing.construct_webhook_event(payload, signature)
    except BillingNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid webhook signature") from e

    logger.info(
        "Stripe webhook received: %s (%s)",
        billing.stripe_field(event, "type"), billing.stripe_field(event, "id"),
    )
    applied = await billing.handle_webhook_event(session, event)
    return WebhookResponse(received=True, duplicate=not applied)


# ---------------------------------------------------------------------------
# GET /api/stripe/subscription-status/{user_id}
# ---------------------------------------------------------------------------


@router.get(
    "/subscription-status/{user_id}",
    response_model=SubscriptionStatusResponse,
    response_model_exclude_unset=True,
    summary="Current subscription for a user",
)
async def subscription_status(
    user_id: str,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> SubscriptionStatusResponse:
    if not settings.stripe_configured:
        return SubscriptionStatusResponse(
            has_subscription=False, customer_id=None, subscription_id=None,
        )
    _require_valid_user_id(user_id)
    ensure_same_user(user, user_id)

    profile = await session.get(Profile, user_id)
    if profile is None or not profile.stripe_subscription_id:
        return SubscriptionStatusResponse(
            has_subscription=False,
            customer_id=profile.stripe_customer_id if profile else None,
            subscription_id=None,
            status=profile.subscription_status if profile else None,
            tier=profile.tier if profile else None,
        )

    try:
        subscription = await billing.retrieve_subscription(profile.stripe_subscription_id)
    except (stripe.StripeError, BillingNotConfiguredError) as e:
        _raise_stripe_error("checking subscription status", e)

    # Stripe is the source of truth; refresh the cached tier while we're here
    billing.sync_subscription(profile, subscription)
    status = billing.stripe_field(subscription, "status")

    return SubscriptionStatusResponse(
        has_subscription=status in billing.ACTIVE_STATUSES,
        customer_id=profile.stripe_customer_id,
        subscription_id=billing.stripe_field(subscription, "id"),
        status=status,
        tier=profile.tier,
    )


# ---------------------------------------------------------------------------
# POST /api/stripe/delete-account
# ---------------------------------------------------------------------------


@router.post(
    "/delete-account",
    response_model=SuccessResponse,
    summary="Delete the account and all its data",
    description=(
        "Cancels any active subscription, deletes every thought and the "
        "profile, then removes the Supabase auth user. Irreversible."
    ),
)
async def delete_account(
    body: DeleteAccountRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> SuccessResponse:
    if not body.user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    _require_valid_user_id(body.user_id)
    ensure_same_user(user, body.user_id)

    profile = await session.get(Profile, body.user_id)

    if (
        profile is not None
        and profile.stripe_subscription_id
        and profile.subscription_status in billing.ACTIVE_STATUSES
        and settings.stripe_configured
    ):
        try:
            await billing.cancel_subscription(profile.stripe_subscription_id)
        except (stripe.StripeError, BillingNotConfiguredError) as e:
            _raise_stripe_error("cancelling subscription", e)

    removed = await thought_store.delete_all_for_user(session, body.user_id)
    if profile is not None:
        await session.delete(profile)
        await session.flush()

    if settings.supabase_configured:
        try:
            await delete_auth_user(body.user_id)
        except AuthNotConfiguredError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except Exception as e:
            logger.exception("Failed to delete auth user %s", body.user_id)
            raise HTTPException(
                status_code=500, detail="Failed to delete account",
            ) from e

    logger.info(
        "Account deleted: user=%s, thoughts=%d", body.user_id, removed,
    )
    return SuccessResponse(success=True)
