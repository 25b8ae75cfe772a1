"""Stripe webhook signature verification.

Pure validation: nothing downstream runs unless ``verify`` returns.
Several secrets may be configured during rotation; the first one that
validates the signature wins.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence

import stripe

from draftwise.core.exceptions import ConfigurationMissing, MalformedPayload, SignatureInvalid

logger = logging.getLogger(__name__)


class WebhookVerifier:
    def __init__(self, secrets: Sequence[str], tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE) -> None:
        self._secrets = [s for s in secrets if s]
        self._tolerance = tolerance

    def verify(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """Return the parsed event carried by ``payload``.

        Raises:
            ConfigurationMissing: no secret is configured or the header is absent.
            SignatureInvalid: the signature matches none of the secrets.
            MalformedPayload: the signed payload is not a JSON object.
        """
        if not self._secrets:
            logger.error("[stripe] webhook secret not configured")
            raise ConfigurationMissing("Webhook secret not configured")
        if not sig_header:
            logger.error("[stripe] webhook request missing Stripe-Signature header")
            raise ConfigurationMissing("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SignatureInvalid("Payload is not valid UTF-8") from exc

        last_error: Exception | None = None
        for secret in self._secrets:
            try:
                stripe.WebhookSignature.verify_header(text, sig_header, secret, self._tolerance)
                break
            except stripe.SignatureVerificationError as exc:
                last_error = exc
        else:
            logger.warning(
                "[stripe] invalid signature after trying %d secrets: %s", len(self._secrets), last_error
            )
            raise SignatureInvalid("Invalid signature") from last_error

        try:
            event = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedPayload("Payload is not valid JSON") from exc
        if not isinstance(event, dict) or not event.get("type"):
            raise MalformedPayload("Payload is not a Stripe event")
        return event
