"""Enumeration types used throughout the Draftwise API.

Enumerations constrain the values that can be stored in the database or
passed through the API.  ``SubscriptionStatus`` mirrors Stripe's
subscription status strings and is open: a status Stripe
adds in the future maps to ``UNKNOWN`` instead of failing the upsert.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """Lifecycle state of a mirrored Stripe subscription."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class ContentStatus(str, Enum):
    """Publishing state of a content item."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
