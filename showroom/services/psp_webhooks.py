"""Stripe webhook verification and dispatch."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from showroom.clients import Clients
from showroom.services import disputes as disputes_service
from showroom.services import payments as payments_service
from showroom.utils.errors import WebhookSignatureError, error_response
from showroom.utils.masking import secret_fingerprint

logger = logging.getLogger(__name__)

CHECKOUT_EVENTS = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)


def _dispatch(clients: Clients, event: dict[str, Any]) -> dict[str, Any]:
    event_type = event.get("type") or ""
    event_id = event.get("id")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type in CHECKOUT_EVENTS:
        return payments_service.mark_listing_paid(clients, obj, event_id=event_id)
    if event_type in disputes_service.DISPUTE_EVENTS or event_type == disputes_service.REFUND_EVENT:
        return disputes_service.handle_dispute_event(clients, event_type, obj, event_id=event_id)

    logger.info("Unhandled Stripe event type", extra={"event_type": event_type, "event_id": event_id})
    return {"handled": False, "reason": "ignored_event_type"}


async def handle_stripe_webhook(request: Request, clients: Clients) -> dict[str, Any]:
    """Verify a Stripe webhook against the raw body, then apply it."""

    payload = await request.body()
    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response(
                "STRIPE_SIGNATURE_MISSING", "Stripe-Signature header is required."
            ),
        )

    try:
        event = clients.ledger.verify_webhook(payload, sig_header)
    except WebhookSignatureError:
        logger.warning(
            "Stripe signature verification failed",
            extra={"secret": secret_fingerprint(clients.settings.STRIPE_WEBHOOK_SECRET)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("STRIPE_SIGNATURE_INVALID", "Invalid Stripe signature."),
        )

    event_type = event.get("type") or ""
    logger.info(
        "Stripe webhook received",
        extra={"event_type": event_type, "event_id": event.get("id")},
    )
    result = await run_in_threadpool(_dispatch, clients, event)
    return {"received": True, "type": event_type, **result}


__all__ = ["handle_stripe_webhook", "CHECKOUT_EVENTS"]
