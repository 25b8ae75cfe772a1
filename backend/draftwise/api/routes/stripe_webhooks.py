from __future__ import annotations

import fnmatch
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from draftwise.api.dependencies import get_reconciler, get_webhook_verifier
from draftwise.core.config import get_allowed_event_patterns
from draftwise.core.exceptions import ReconciliationError, WebhookVerificationError
from draftwise.core.observability import capture_exception
from draftwise.models.schemas import WebhookAck
from draftwise.services.reconciler import EventReconciler
from draftwise.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    reconciler: EventReconciler = Depends(get_reconciler),
):
    """Handle Stripe webhook events.

    Verifies the Stripe-Signature header against the configured webhook
    secret(s) and reconciles the event into the billing mirrors.

    Responds 200 when the event was handled, ignored or only produced a
    soft anomaly; 400 for signature or configuration problems (Stripe does
    not retry those); 500 when reconciliation failed so Stripe re-delivers.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = verifier.verify(payload, sig_header)
    except WebhookVerificationError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": "Webhook Error", "details": exc.detail})

    event_type: str = event.get("type", "")

    # Optional backend-side allowlist to reduce noise even if Dashboard is broad
    patterns = get_allowed_event_patterns()
    if patterns and not any(fnmatch.fnmatch(event_type, pat) for pat in patterns):
        logger.debug("[stripe] event filtered by allowlist type=%s patterns=%s", event_type, patterns)
        ack = WebhookAck(type=event_type, filtered=True)
        return JSONResponse(status_code=200, content=ack.model_dump(exclude_none=True))

    try:
        outcome = await reconciler.handle(event)
    except ReconciliationError as exc:
        logger.exception("[stripe] error handling event %s id=%s: %s", event_type, event.get("id"), exc)
        capture_exception(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Webhook handler failed", "details": exc.detail},
        )

    ack = WebhookAck(
        type=event_type,
        ignored=None if outcome.recognized else True,
        actions=outcome.actions,
        anomalies=len(outcome.anomalies),
    )
    return JSONResponse(status_code=200, content=ack.model_dump(exclude_none=True))
