"""Mapping of Stripe subscription objects onto ``subscriptions`` rows.

Stripe delivers full subscription snapshots (or we fetch one), so the
mapping is a pure function of the object: every mirrored column is
recomputed on each upsert.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Mapping, Optional

import stripe

from draftwise.models.enums import SubscriptionStatus

logger = logging.getLogger(__name__)


def to_plain(value: Any) -> Any:
    """Recursively copy Stripe SDK objects into plain dicts and lists.

    ``StripeObject`` is not a ``Mapping`` (and has no ``.get``) in current
    SDK releases, so it is converted with its own ``to_dict`` first.
    """
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def expandable_id(value: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may be expanded into an object."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        ref = value.get("id")
        return str(ref) if ref else None
    return str(value) or None


def epoch_to_datetime(ts: Any) -> Optional[dt.datetime]:
    """Convert Stripe epoch seconds to an aware UTC datetime."""
    if ts is None:
        return None
    return dt.datetime.fromtimestamp(int(ts), tz=dt.timezone.utc)


def parse_status(raw: Any) -> SubscriptionStatus:
    status = SubscriptionStatus(raw)
    if status is SubscriptionStatus.UNKNOWN and raw != SubscriptionStatus.UNKNOWN.value:
        logger.warning("[stripe] unrecognised subscription status=%r mapped to unknown", raw)
    return status


def _first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    items = subscription.get("items") or {}
    data = items.get("data") if isinstance(items, Mapping) else None
    if isinstance(data, list) and data:
        return data[0] or {}
    return {}


def owning_user_id(subscription: Mapping[str, Any], metadata_key: str) -> Optional[str]:
    metadata = subscription.get("metadata") or {}
    value = metadata.get(metadata_key)
    return str(value) if value else None


def subscription_record_values(subscription: Mapping[str, Any], user_id: str) -> dict[str, Any]:
    """Return the ``subscriptions`` column values for ``subscription``.

    Keys are table column names.  The billing period is read from the
    subscription itself and falls back to the first item, where newer
    Stripe API versions report it.
    """
    item = _first_item(subscription)
    price = item.get("price") or {}
    period_start = subscription.get("current_period_start") or item.get("current_period_start")
    period_end = subscription.get("current_period_end") or item.get("current_period_end")
    return {
        "id": subscription["id"],
        "user_id": user_id,
        "metadata": dict(subscription.get("metadata") or {}),
        "status": parse_status(subscription.get("status")),
        "price_id": expandable_id(price),
        "quantity": item.get("quantity"),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "created": epoch_to_datetime(subscription.get("created")),
        "current_period_start": epoch_to_datetime(period_start),
        "current_period_end": epoch_to_datetime(period_end),
        "ended_at": epoch_to_datetime(subscription.get("ended_at")),
        "cancel_at": epoch_to_datetime(subscription.get("cancel_at")),
        "canceled_at": epoch_to_datetime(subscription.get("canceled_at")),
        "trial_start": epoch_to_datetime(subscription.get("trial_start")),
        "trial_end": epoch_to_datetime(subscription.get("trial_end")),
    }
