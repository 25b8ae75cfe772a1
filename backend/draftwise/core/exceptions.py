"""Domain exceptions.

Every error carries the HTTP status it maps to so routes and the generic
exception handler agree on the response.  Webhook verification errors are
terminal (400, never retried); reconciliation errors are 500 so Stripe
re-delivers the event.
"""

from __future__ import annotations

from typing import Optional


class DraftwiseError(Exception):
    """Base class for application errors."""

    status_code: int = 500

    def __init__(self, message: str = "", *, detail: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.detail = detail or message or self.__class__.__name__


# -----------------------------------------------------------------------------
# Webhook verification (400 family)


class WebhookVerificationError(DraftwiseError):
    status_code = 400


class SignatureInvalid(WebhookVerificationError):
    """The Stripe-Signature header does not match any configured secret."""


class ConfigurationMissing(WebhookVerificationError):
    """No webhook secret is configured or the signature header is absent."""


class MalformedPayload(WebhookVerificationError):
    """The payload was signed correctly but is not a JSON event object."""


# -----------------------------------------------------------------------------
# Reconciliation (500 family, retried by the sender)


class ReconciliationError(DraftwiseError):
    status_code = 500


class UpstreamFetchFailed(ReconciliationError):
    """A call to the payment provider failed."""


class StoreWriteFailed(ReconciliationError):
    """A billing mirror upsert failed."""


class OwningUserUnresolvable(Exception):
    """Soft anomaly: a subscription has no resolvable owning user.

    Never raised; the reconciler records it on the outcome and the webhook
    is still acknowledged.  Not a ``DraftwiseError`` because it maps to no
    error response.
    """

    def __init__(self, subscription_id: Optional[str], event_type: str, reason: str = "missing owning user id in metadata") -> None:
        super().__init__(f"{reason}: subscription={subscription_id} event={event_type}")
        self.subscription_id = subscription_id
        self.event_type = event_type
        self.reason = reason


# -----------------------------------------------------------------------------
# AI analysis


class AnalysisUnavailable(DraftwiseError):
    status_code = 503


class AnalysisFailed(DraftwiseError):
    status_code = 500


__all__ = [
    "DraftwiseError",
    "WebhookVerificationError",
    "SignatureInvalid",
    "ConfigurationMissing",
    "MalformedPayload",
    "ReconciliationError",
    "UpstreamFetchFailed",
    "StoreWriteFailed",
    "OwningUserUnresolvable",
    "AnalysisUnavailable",
    "AnalysisFailed",
]
