"""Stripe Connect onboarding for sellers."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from showroom.clients import Clients
from showroom.models.listing import Listing
from showroom.utils.audit import log_audit
from showroom.utils.errors import error_response

logger = logging.getLogger(__name__)

ONBOARDING_IN_PROGRESS = "In progress"


def onboarding_link(clients: Clients, account_id: str) -> dict[str, Any]:
    """Return a fresh hosted onboarding link for an existing connected account."""

    settings = clients.settings
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("MISSING_ACCOUNT", "stripe_account_id is required."),
        )
    link = clients.ledger.create_account_link(
        account_id=account_id,
        refresh_url=settings.site_link(settings.ONBOARDING_REFRESH_PATH),
        return_url=settings.site_link(settings.ONBOARDING_RETURN_PATH),
    )
    return {"ok": True, "stripe_account_id": account_id, "url": link.get("url")}


def start_onboarding(
    clients: Clients,
    listing_id: str,
    *,
    seller_email: str | None = None,
    seller_name: str | None = None,
    actor: str = "admin",
) -> dict[str, Any]:
    """Create the seller's connected account (once) and return an onboarding link."""

    listing = Listing.from_record(clients.records.get(listing_id))
    email = seller_email or listing.seller_email
    name = seller_name or listing.seller_name
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("MISSING_SELLER_EMAIL", "sellerEmail is required."),
        )

    account_id = listing.stripe_account_id
    created = False
    if not account_id:
        account = clients.ledger.create_connected_account(
            email=email, display_name=name or "Showroom Seller"
        )
        account_id = str(account.get("id"))
        created = True
        fields: dict[str, Any] = {
            "stripe_account_id": account_id,
            "stripe_onboarding_status": ONBOARDING_IN_PROGRESS,
            "seller_email": email,
        }
        if name:
            fields["seller_name"] = name
        clients.records.patch(listing_id, fields)
        log_audit(
            actor=actor,
            action="SELLER_ACCOUNT_CREATED",
            listing_id=listing_id,
            data={"stripe_account_id": account_id, "seller_email": email},
        )
        logger.info("Connected account created", extra={"listing_id": listing_id})

    result = onboarding_link(clients, account_id)
    result.update(listing_id=listing_id, created=created)
    return result


__all__ = ["start_onboarding", "onboarding_link"]
