"""Reconciliation of verified Stripe events into the billing mirrors.

Each event is handled independently and idempotently:

- ``customer.subscription.*`` events carry a full subscription snapshot
  which is upserted as-is.
- ``invoice.paid`` / ``invoice.payment_failed`` only reference the
  subscription; the invoice copy may be stale, so the subscription is
  always re-fetched from Stripe before upserting.
- ``checkout.session.completed`` links the Stripe customer to the user and,
  for subscription checkouts, mirrors the new subscription, backfilling the
  owning user id from ``client_reference_id`` when Stripe did not set it.

A subscription without a resolvable owner is a soft anomaly: it is logged
and reported, nothing is written, and the event still counts as handled.
Fetch and store failures propagate so the webhook answers 500 and Stripe
re-delivers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from starlette.concurrency import run_in_threadpool

from draftwise.core.exceptions import OwningUserUnresolvable
from draftwise.core.observability import report_anomaly, sentry_breadcrumb, sentry_set_tags
from draftwise.services.billing_store import CustomerLinkStore, SubscriptionStore
from draftwise.services.stripe_gateway import StripeGateway
from draftwise.services.subscription_snapshot import (
    expandable_id,
    owning_user_id,
    subscription_record_values,
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = frozenset(
    {
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    }
)
INVOICE_EVENTS = frozenset({"invoice.paid", "invoice.payment_failed"})
CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass
class ReconcileOutcome:
    """What handling an event did; used for the acknowledgement body."""

    event_type: str
    recognized: bool = True
    actions: List[str] = field(default_factory=list)
    anomalies: List[OwningUserUnresolvable] = field(default_factory=list)


def invoice_subscription_id(invoice: Mapping[str, Any]) -> Optional[str]:
    """Return the subscription an invoice belongs to, if any.

    Older API versions expose ``invoice.subscription``; newer ones moved it
    to ``invoice.parent.subscription_details.subscription``.
    """
    sub_id = expandable_id(invoice.get("subscription"))
    if sub_id:
        return sub_id
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return expandable_id(details.get("subscription"))


class EventReconciler:
    def __init__(
        self,
        gateway: StripeGateway,
        customers: CustomerLinkStore,
        subscriptions: SubscriptionStore,
        user_metadata_key: str = "supabaseUserId",
    ) -> None:
        self.gateway = gateway
        self.customers = customers
        self.subscriptions = subscriptions
        self.user_metadata_key = user_metadata_key

    async def handle(self, event: Mapping[str, Any]) -> ReconcileOutcome:
        event_type: str = event.get("type", "")
        data_object: Dict[str, Any] = (event.get("data") or {}).get("object") or {}
        outcome = ReconcileOutcome(event_type=event_type)

        sentry_set_tags({"stripe.event_type": event_type})
        if data_object.get("id"):
            sentry_breadcrumb(
                category="stripe",
                message=f"webhook:{event_type}",
                data={"object": data_object.get("object"), "id": data_object.get("id")},
            )

        if event_type in SUBSCRIPTION_EVENTS:
            await self._sync_subscription(data_object, outcome)
        elif event_type in INVOICE_EVENTS:
            await self._handle_invoice(data_object, outcome)
        elif event_type == CHECKOUT_COMPLETED:
            await self._handle_checkout_completed(data_object, outcome)
        else:
            outcome.recognized = False
            logger.debug("[stripe] unhandled event type=%s id=%s", event_type, data_object.get("id"))
        return outcome

    # ------------------------------------------------------------------ helpers

    async def _fetch_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await run_in_threadpool(self.gateway.retrieve_subscription, subscription_id)

    def _record_anomaly(self, outcome: ReconcileOutcome, anomaly: OwningUserUnresolvable) -> None:
        logger.error("[stripe] %s", anomaly)
        report_anomaly(
            str(anomaly),
            tags={"stripe.event_type": anomaly.event_type, "stripe.subscription_id": anomaly.subscription_id or ""},
        )
        outcome.anomalies.append(anomaly)

    async def _sync_subscription(self, subscription: Mapping[str, Any], outcome: ReconcileOutcome) -> None:
        sub_id = subscription.get("id")
        user_id = owning_user_id(subscription, self.user_metadata_key)
        if not user_id:
            self._record_anomaly(outcome, OwningUserUnresolvable(sub_id, outcome.event_type))
            return
        await self.subscriptions.upsert(subscription_record_values(subscription, user_id))
        outcome.actions.append(f"subscription_upserted:{sub_id}")
        logger.info(
            "[stripe] handled subscription event=%s id=%s status=%s",
            outcome.event_type, sub_id, subscription.get("status"),
        )

    # ------------------------------------------------------------------ handlers

    async def _handle_invoice(self, invoice: Mapping[str, Any], outcome: ReconcileOutcome) -> None:
        sub_id = invoice_subscription_id(invoice)
        if not sub_id:
            logger.info("[stripe] %s without subscription id=%s; nothing to sync", outcome.event_type, invoice.get("id"))
            return
        subscription = await self._fetch_subscription(sub_id)
        await self._sync_subscription(subscription, outcome)

    async def _handle_checkout_completed(self, session: Mapping[str, Any], outcome: ReconcileOutcome) -> None:
        customer_id = expandable_id(session.get("customer"))
        client_ref = session.get("client_reference_id")
        logger.info(
            "[stripe] checkout.session.completed id=%s mode=%s customer=%s client_ref=%s",
            session.get("id"), session.get("mode"), customer_id, client_ref,
        )

        if customer_id and client_ref:
            await self.customers.upsert(str(client_ref), customer_id)
            outcome.actions.append(f"customer_linked:{client_ref}")

        if session.get("mode") != "subscription":
            return
        sub_id = expandable_id(session.get("subscription"))
        if not sub_id:
            self._record_anomaly(
                outcome,
                OwningUserUnresolvable(None, outcome.event_type, reason=f"checkout session {session.get('id')} has no subscription id"),
            )
            return

        subscription = await self._fetch_subscription(sub_id)
        metadata = dict(subscription.get("metadata") or {})
        if not metadata.get(self.user_metadata_key) and client_ref:
            metadata[self.user_metadata_key] = str(client_ref)
            subscription = {**subscription, "metadata": metadata}
        await self._sync_subscription(subscription, outcome)
