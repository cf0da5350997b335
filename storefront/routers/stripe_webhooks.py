"""
Stripe webhook endpoint for checkout, cancellation and dunning events.

OVERVIEW:
=========
Stripe posts snapshot events to ``/api/stripe-webhook``. The handler
authenticates the raw body, parses the envelope and hands the event to the
:class:`EventRouter`, which performs the side effects:

1. ``checkout.session.completed``   → account + magic link, welcome email,
   operator sale notification, relay webhook
2. ``customer.subscription.deleted`` → relay webhook
3. ``invoice.payment_failed``       → payment-issue email
4. anything else                    → logged and ignored

IMPORTANT: once the event is authenticated and parsed the endpoint always
answers ``{"received": true}`` so Stripe does not redeliver. Only signature
failures and malformed bodies are rejected (400).

REQUIRED ENVIRONMENT VARIABLES (see storefront/settings.py):
- STRIPE_WEBHOOK_SECRET: endpoint signing secret (optional only when
  ALLOW_UNSIGNED_WEBHOOKS=1)
"""

from __future__ import annotations

import json
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError

from storefront.errors import SignatureError
from storefront.models import EventType, InboundEvent
from storefront.schemas import StripeEventEnvelope, WebhookAck
from storefront.settings import Settings
from storefront.utils.dependencies import get_event_router, get_settings
from storefront.utils.event_router import EventRouter
from storefront.utils.logger import logger
from storefront.utils.security_utils import verify_signature

public_router = APIRouter(prefix="/api", tags=["webhooks"])

SIGNATURE_HEADER = "Stripe-Signature"


def _authenticate(raw_body: bytes, sig_header: str | None, settings: Settings) -> None:
    secret = settings.stripe_webhook_secret
    if not sig_header or not secret:
        if settings.signature_required:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing_stripe_signature")
        logger.warning(
            "stripe.webhook.unverified",
            extra={"has_signature": bool(sig_header), "has_secret": bool(secret)},
        )
        return

    try:
        verify_signature(raw_body, sig_header, secret, now=time.time(), max_skew=settings.webhook_tolerance_seconds)
    except SignatureError as exc:
        logger.warning("stripe.webhook.signature_rejected", extra={"reason": type(exc).__name__})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {exc}")


@public_router.post("/stripe-webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    router: EventRouter = Depends(get_event_router),
):
    # Signature is computed over the exact bytes Stripe sent.
    raw_body = await request.body()
    sig_header = request.headers.get(SIGNATURE_HEADER)
    _authenticate(raw_body, sig_header, settings)

    try:
        envelope = StripeEventEnvelope.model_validate(json.loads(raw_body))
    except PydanticValidationError:
        # Valid JSON that is not an object.
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_event")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_json")

    event = InboundEvent(
        type=EventType.from_provider(envelope.type),
        raw_payload=raw_body,
        signature_header=sig_header,
        provider_type=envelope.type,
        data_object=envelope.data.object_,
        event_id=envelope.id,
    )
    logger.info(
        "stripe.webhook.received",
        extra={"event_type": envelope.type, "event_id": envelope.id},
    )

    try:
        report = await router.dispatch(event)
        logger.info(
            "stripe.webhook.handled",
            extra={
                "event_type": envelope.type,
                "event_id": envelope.id,
                "branches": len(report.outcomes),
                "failed": len(report.failed),
            },
        )
    except Exception as e:  # noqa: BLE001
        logger.error("stripe.webhook.handler_error", extra={"error": str(e), "event_type": envelope.type})

    return WebhookAck()
