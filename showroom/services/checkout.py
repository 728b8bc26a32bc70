"""Checkout initiation for a single listing."""
from __future__ import annotations

import logging

from fastapi import HTTPException, status

from showroom.clients import Clients
from showroom.models.listing import Listing, ListingStatus
from showroom.services.psp_stripe import to_cents
from showroom.utils.errors import error_response

logger = logging.getLogger(__name__)


def create_checkout_session(clients: Clients, listing_id: str) -> dict[str, str]:
    """Validate that the listing is purchasable and open a Stripe Checkout session.

    The listing itself is not mutated; the payment webhook owns that transition.
    """

    settings = clients.settings
    listing = Listing.from_record(clients.records.get(listing_id))

    if listing.locked:
        logger.info("Checkout refused: listing locked", extra={"listing_id": listing_id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response("LISTING_LOCKED", "Listing under review."),
        )
    if listing.status != ListingStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "LISTING_NOT_AVAILABLE",
                "Item not available.",
                {"status": listing.raw_status},
            ),
        )
    amount_cents = to_cents(listing.price) if listing.price is not None else 0
    if amount_cents <= 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("INVALID_PRICE", "Listing has no valid price."),
        )

    metadata = {"listingId": listing.id}
    session = clients.ledger.create_checkout_session(
        listing_id=listing.id,
        title=listing.title or "Showroom Listing",
        amount_cents=amount_cents,
        currency=settings.PAYOUT_CURRENCY,
        success_url=settings.site_link(settings.CHECKOUT_SUCCESS_PATH),
        cancel_url=settings.site_link(settings.CHECKOUT_CANCEL_PATH),
        metadata=metadata,
    )
    logger.info(
        "Checkout session created",
        extra={"listing_id": listing.id, "session_id": session.get("id"), "amount_cents": amount_cents},
    )
    return {"url": session.get("url") or "", "session_id": session.get("id") or ""}


__all__ = ["create_checkout_session"]
