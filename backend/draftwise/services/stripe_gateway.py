"""Thin, explicitly constructed wrapper over the Stripe SDK.

The API key is passed on every call instead of being assigned to the
module-global ``stripe.api_key``, so several gateways (or a fake in tests)
can coexist in one process.  All SDK failures are re-raised as
``UpstreamFetchFailed``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe

from draftwise.core.exceptions import UpstreamFetchFailed
from draftwise.services.subscription_snapshot import to_plain

logger = logging.getLogger(__name__)


class StripeGateway:
    """Payment-provider operations used by billing routes and reconciliation."""

    def __init__(self, api_key: Optional[str], user_metadata_key: str = "supabaseUserId") -> None:
        self._api_key = api_key
        self.user_metadata_key = user_metadata_key

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _require_key(self) -> str:
        if not self._api_key:
            logger.error("[stripe] STRIPE_API_KEY not configured")
            raise UpstreamFetchFailed("Stripe API key not configured")
        return self._api_key

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Fetch the authoritative subscription object as a plain dict."""
        try:
            sub = stripe.Subscription.retrieve(subscription_id, api_key=self._require_key())
        except stripe.StripeError as exc:
            logger.error("[stripe] subscription retrieve failed id=%s: %s", subscription_id, exc)
            raise UpstreamFetchFailed(f"failed to retrieve subscription {subscription_id}") from exc
        return to_plain(sub)

    def create_customer(self, email: Optional[str], user_id: str) -> str:
        """Create a Stripe customer tagged with the application user id."""
        try:
            cust = stripe.Customer.create(
                email=email,
                metadata={self.user_metadata_key: user_id},
                api_key=self._require_key(),
            )
        except stripe.StripeError as exc:
            logger.error("[stripe] customer create failed user=%s: %s", user_id, exc)
            raise UpstreamFetchFailed("failed to create Stripe customer") from exc
        return cust.id

    def create_portal_session(self, customer_id: str, return_url: str, configuration: Optional[str] = None) -> str:
        params: Dict[str, Any] = {"customer": customer_id, "return_url": return_url}
        if configuration:
            params["configuration"] = configuration
        try:
            session = stripe.billing_portal.Session.create(api_key=self._require_key(), **params)
        except stripe.StripeError as exc:
            logger.error("[stripe] billing portal session failed customer=%s: %s", customer_id, exc)
            raise UpstreamFetchFailed("failed to create billing portal session") from exc
        return session.url

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        user_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """Create a subscription-mode Checkout Session for ``user_id``.

        ``client_reference_id`` and the subscription metadata both carry the
        user id so the resulting webhooks can be attributed.
        """
        request_opts: Dict[str, Any] = {}
        if idempotency_key:
            request_opts["idempotency_key"] = idempotency_key
        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                customer=customer_id,
                client_reference_id=user_id,
                line_items=[{"price": price_id, "quantity": 1}],
                subscription_data={"metadata": {self.user_metadata_key: user_id}},
                success_url=success_url,
                cancel_url=cancel_url,
                allow_promotion_codes=True,
                api_key=self._require_key(),
                **request_opts,
            )
        except stripe.StripeError as exc:
            logger.error("[stripe] checkout session failed user=%s price=%s: %s", user_id, price_id, exc)
            raise UpstreamFetchFailed("failed to create checkout session") from exc
        return session.url
