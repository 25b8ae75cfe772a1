from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from starlette.concurrency import run_in_threadpool

from draftwise.api.dependencies import (
    get_current_user,
    get_customer_store,
    get_stripe_gateway,
    get_subscription_store,
)
from draftwise.core.config import settings
from draftwise.core.exceptions import UpstreamFetchFailed
from draftwise.core.observability import sentry_breadcrumb
from draftwise.models.schemas import CheckoutRequest, PortalRequest, RedirectUrl, SubscriptionRead
from draftwise.models.tables import Profile
from draftwise.services.billing_store import CustomerLinkStore, SubscriptionStore
from draftwise.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


def _require_gateway(gateway: StripeGateway) -> None:
    if not gateway.configured:
        raise HTTPException(status_code=500, detail="Missing STRIPE_API_KEY")


async def _ensure_customer(
    user: Profile,
    gateway: StripeGateway,
    customers: CustomerLinkStore,
) -> str:
    """Return the user's Stripe customer id, creating and linking one if needed."""
    customer_id = await customers.get_customer_id(user.id)
    if customer_id:
        return customer_id
    try:
        customer_id = await run_in_threadpool(gateway.create_customer, user.email, user.id)
    except UpstreamFetchFailed as exc:
        raise HTTPException(status_code=500, detail="Unable to create customer") from exc
    await customers.upsert(user.id, customer_id)
    return customer_id


@router.post("/checkout", response_model=RedirectUrl)
async def create_checkout_session(
    payload: Optional[CheckoutRequest] = None,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    user: Profile = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    customers: CustomerLinkStore = Depends(get_customer_store),
):
    """Create a Stripe Checkout Session for the authenticated user.

    Reuses the linked Stripe customer, otherwise creates one and records the
    link.  The user id travels as ``client_reference_id`` and subscription
    metadata so the resulting webhooks can be attributed.
    """
    _require_gateway(gateway)

    # Choose price: prefer request body, fallback to configured default
    chosen_price = (payload.price_id if payload else None) or settings.STRIPE_PRICE_DEFAULT
    if not chosen_price:
        raise HTTPException(status_code=400, detail="Missing price_id and no default configured")

    customer_id = await _ensure_customer(user, gateway, customers)

    try:
        url = await run_in_threadpool(
            lambda: gateway.create_checkout_session(
                customer_id=customer_id,
                user_id=user.id,
                price_id=chosen_price,
                success_url=f"{settings.FRONTEND_BASE_URL}/dashboard?checkout=success",
                cancel_url=f"{settings.FRONTEND_BASE_URL}/pricing?checkout=cancelled",
                idempotency_key=idempotency_key,
            )
        )
    except UpstreamFetchFailed as exc:
        raise HTTPException(status_code=500, detail="Unable to create checkout session") from exc

    sentry_breadcrumb(
        category="stripe",
        message="checkout.session.created",
        data={"price_id": chosen_price, "customer_id": customer_id},
    )
    return RedirectUrl(url=url)


@router.post("/portal", response_model=RedirectUrl)
async def create_billing_portal_session(
    payload: Optional[PortalRequest] = None,
    user: Profile = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    customers: CustomerLinkStore = Depends(get_customer_store),
):
    """Create a Stripe Billing Portal session for the authenticated user."""
    _require_gateway(gateway)

    customer_id = await _ensure_customer(user, gateway, customers)
    return_url = (payload.return_url if payload else None) or f"{settings.FRONTEND_BASE_URL}/dashboard"

    try:
        url = await run_in_threadpool(
            gateway.create_portal_session,
            customer_id,
            return_url,
            settings.STRIPE_PORTAL_CONFIGURATION_ID,
        )
    except UpstreamFetchFailed as exc:
        raise HTTPException(status_code=500, detail="Unable to create portal session") from exc
    return RedirectUrl(url=url)


@router.get("/subscription", response_model=List[SubscriptionRead])
async def list_my_subscriptions(
    user: Profile = Depends(get_current_user),
    subscriptions: SubscriptionStore = Depends(get_subscription_store),
):
    """Return the mirrored subscriptions of the current user, newest first."""
    rows = await subscriptions.list_for_user(user.id)
    return [SubscriptionRead.model_validate(r) for r in rows]
