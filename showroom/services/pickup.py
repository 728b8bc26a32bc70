"""Pickup QR verification at the showroom."""
from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import HTTPException, status

from showroom.clients import Clients
from showroom.models.listing import Listing, ListingStatus
from showroom.services import lifecycle
from showroom.services.payouts import settle_listing
from showroom.utils.audit import log_audit
from showroom.utils.errors import UpstreamError, error_response
from showroom.utils.pickup_credentials import PickupPayloadError, parse_payload
from showroom.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)


def _secret_equals(provided: str, stored: str | None) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), stored.encode("utf-8"))


def verify_pickup(clients: Clients, raw_payload: str, *, actor: str = "admin") -> dict[str, Any]:
    """Confirm a pickup from scanned QR text, then attempt the payout.

    A scan mutates the listing at most once: the single patch that sets
    ``pickup_confirmed``. Settlement runs afterwards against a fresh read.
    """

    settings = clients.settings
    try:
        scanned = parse_payload(
            raw_payload,
            marker=settings.PICKUP_QR_MARKER,
            record_id_prefix=settings.RECORD_ID_PREFIX,
            min_token_length=settings.PICKUP_QR_MIN_TOKEN_LENGTH,
        )
    except PickupPayloadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("INVALID_QR", str(exc)),
        ) from exc

    listing_id = scanned.listing_id
    listing = Listing.from_record(clients.records.get(listing_id))

    if listing.pickup_confirmed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "PICKUP_ALREADY_CONFIRMED",
                "Pickup already confirmed.",
                {
                    "pickup_confirmed_at": (
                        to_iso(listing.pickup_confirmed_at) if listing.pickup_confirmed_at else None
                    ),
                    "seller_payout_status": listing.raw_payout_status,
                },
            ),
        )

    token_ok = _secret_equals(scanned.token, listing.pickup_qr_token)
    payload_ok = _secret_equals(scanned.raw, listing.pickup_qr_payload)
    if not (token_ok or payload_ok):
        log_audit(
            actor=actor,
            action="PICKUP_QR_REJECTED",
            listing_id=listing_id,
            data={"reason": "token_mismatch", "status": listing.raw_status},
            level=logging.WARNING,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("QR_MISMATCH", "QR code does not match this listing."),
        )

    if not lifecycle.is_paid_like(listing.raw_status):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "LISTING_NOT_PAID",
                "Listing is not awaiting pickup.",
                {"status": listing.raw_status},
            ),
        )
    if not lifecycle.can_transition(listing.status, ListingStatus.PICKED_UP):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "INVALID_TRANSITION",
                "Listing cannot move to Picked Up.",
                {"status": listing.raw_status},
            ),
        )

    now = utcnow()
    clients.records.patch(
        listing_id,
        {
            "pickup_confirmed": True,
            "pickup_confirmed_at": to_iso(now),
            "status": ListingStatus.PICKED_UP.value,
        },
    )
    log_audit(
        actor=actor,
        action="PICKUP_CONFIRMED",
        listing_id=listing_id,
        data={"status_before": listing.raw_status, "status_after": ListingStatus.PICKED_UP.value},
    )

    response: dict[str, Any] = {
        "ok": True,
        "listing_id": listing_id,
        "pickup_confirmed_at": to_iso(now),
        "status": ListingStatus.PICKED_UP.value,
    }
    try:
        refreshed = Listing.from_record(clients.records.get(listing_id))
        outcome = settle_listing(clients, refreshed, now=utcnow(), actor=actor)
    except UpstreamError as exc:
        logger.error(
            "Payout after pickup failed",
            extra={"listing_id": listing_id, "operation": exc.operation, "error": exc.message},
        )
        response.update(payout_attempted=True, payout={"result": "failed", "reason": exc.message})
        return response

    response.update(payout_attempted=outcome.attempted, payout=outcome.as_dict())
    return response


__all__ = ["verify_pickup"]
