"""Payment confirmation from Stripe Checkout events."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from showroom.clients import Clients
from showroom.models.listing import Listing, ListingStatus, PayoutStatus
from showroom.services import lifecycle
from showroom.services.notifications import (
    alert_ops,
    buyer_pickup_email,
    deliver,
    seller_sold_email,
)
from showroom.utils.audit import log_audit
from showroom.utils.errors import RecordNotFoundError
from showroom.utils.pickup_credentials import build_payload, generate_token
from showroom.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

PAID_SESSION_STATES = {"paid", "no_payment_required"}
_ALREADY_COLLECTED = {ListingStatus.PICKED_UP, ListingStatus.PAYOUT_SENT}


def _buyer_email(session: Mapping[str, Any]) -> str | None:
    details = session.get("customer_details") or {}
    return details.get("email") or session.get("customer_email") or None


def _payment_intent_id(session: Mapping[str, Any]) -> str | None:
    intent = session.get("payment_intent")
    if isinstance(intent, Mapping):
        return intent.get("id")
    return intent or None


def mark_listing_paid(
    clients: Clients,
    session: Mapping[str, Any],
    *,
    event_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Move the purchased listing to ``Paid – Pending Pickup`` and issue its pickup credential.

    Safe to replay: an existing credential, ``paid_at`` and ``payout_eligible_at`` are
    kept, and a listing that already moved past payment is left alone.
    """

    settings = clients.settings
    now = now or utcnow()
    session_id = session.get("id")
    payment_status = session.get("payment_status")

    if payment_status not in PAID_SESSION_STATES:
        logger.info(
            "Checkout session not paid yet; ignoring",
            extra={"session_id": session_id, "payment_status": payment_status, "event_id": event_id},
        )
        return {"handled": False, "reason": "session_not_paid"}

    listing_id = (session.get("metadata") or {}).get("listingId")
    if not listing_id:
        logger.warning(
            "Checkout session without listingId metadata",
            extra={"session_id": session_id, "event_id": event_id},
        )
        return {"handled": False, "reason": "missing_listing_id"}

    try:
        listing = Listing.from_record(clients.records.get(listing_id))
    except RecordNotFoundError:
        logger.error(
            "Paid checkout for unknown listing",
            extra={"listing_id": listing_id, "session_id": session_id, "event_id": event_id},
        )
        alert_ops(
            clients.notifier,
            settings,
            "Paid checkout for unknown listing",
            {"listing_id": listing_id, "session_id": session_id, "event_id": event_id},
        )
        return {"handled": False, "reason": "listing_not_found", "listing_id": listing_id}

    current = listing.status
    if current in _ALREADY_COLLECTED:
        logger.info(
            "Payment event for listing already past pickup; no changes",
            extra={"listing_id": listing_id, "status": listing.raw_status, "event_id": event_id},
        )
        return {"handled": True, "listing_id": listing_id, "changed": False, "status": listing.raw_status}

    if current == ListingStatus.PAID_PENDING_PICKUP:
        transitioning = False
    elif lifecycle.transition_path(current, ListingStatus.PAID_PENDING_PICKUP):
        transitioning = True
    else:
        logger.error(
            "Payment received for listing in unexpected state",
            extra={"listing_id": listing_id, "status": listing.raw_status, "event_id": event_id},
        )
        alert_ops(
            clients.notifier,
            settings,
            "Payment received for listing in unexpected state",
            {
                "listing_id": listing_id,
                "status": listing.raw_status,
                "session_id": session_id,
                "payment_intent": _payment_intent_id(session),
            },
        )
        return {"handled": False, "reason": "unexpected_status", "listing_id": listing_id}

    token = listing.pickup_qr_token or generate_token()
    payload = listing.pickup_qr_payload or build_payload(settings.PICKUP_QR_MARKER, listing_id, token)
    issued_credential = not listing.pickup_qr_token

    fields: dict[str, Any] = {}
    if transitioning:
        fields["status"] = ListingStatus.PAID_PENDING_PICKUP.value
    if listing.paid_at is None:
        fields["paid_at"] = to_iso(now)
    if listing.payout_eligible_at is None:
        paid_at = listing.paid_at or now
        fields["payout_eligible_at"] = to_iso(paid_at + timedelta(hours=settings.PAYOUT_HOLD_HOURS))
    if not listing.raw_payout_status:
        fields["seller_payout_status"] = PayoutStatus.PENDING.value
    if session_id and not listing.stripe_session_id:
        fields["stripe_session_id"] = session_id
    intent_id = _payment_intent_id(session)
    if intent_id and not listing.stripe_payment_intent_id:
        fields["stripe_payment_intent_id"] = intent_id
    if not listing.pickup_qr_token:
        fields["pickup_qr_token"] = token
    if not listing.pickup_qr_payload:
        fields["pickup_qr_payload"] = payload
    buyer_email = _buyer_email(session)
    if buyer_email and not listing.buyer_email:
        fields["buyer_email"] = buyer_email

    if fields:
        clients.records.patch(listing_id, fields)
    log_audit(
        actor="stripe",
        action="LISTING_PAID" if transitioning else "LISTING_PAID_REPLAY",
        listing_id=listing_id,
        data={
            "status_before": listing.raw_status,
            "fields": sorted(fields),
            "session_id": session_id,
            "event_id": event_id,
        },
    )

    if transitioning or issued_credential:
        updated = listing.model_copy(
            update={"buyer_email": listing.buyer_email or buyer_email}
        )
        deliver(clients.notifier, updated.buyer_email, buyer_pickup_email(updated, payload, settings))
        deliver(clients.notifier, updated.seller_email, seller_sold_email(updated, settings))

    return {
        "handled": True,
        "listing_id": listing_id,
        "changed": bool(fields),
        "status": ListingStatus.PAID_PENDING_PICKUP.value,
    }


__all__ = ["mark_listing_paid", "PAID_SESSION_STATES"]
