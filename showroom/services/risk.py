"""Seller risk scoring from chargeback history."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from showroom.clients import Clients
from showroom.models.listing import Listing
from showroom.services.records import IsTrue
from showroom.utils.audit import log_audit
from showroom.utils.masking import mask_email

logger = logging.getLogger(__name__)


def flag_risky_sellers(clients: Clients, *, threshold: int | None = None) -> dict[str, Any]:
    """Set ``seller_risk_flag`` on the chargeback listings of repeat-offender sellers."""

    threshold = threshold or clients.settings.RISKY_SELLER_CHARGEBACK_THRESHOLD
    records = clients.records.query(IsTrue("chargeback_flag"))

    by_seller: dict[str, list[Listing]] = defaultdict(list)
    for record in records:
        listing = Listing.from_record(record)
        if not listing.seller_email:
            continue
        by_seller[listing.seller_email.strip().lower()].append(listing)

    flagged: list[str] = []
    risky = 0
    for seller, listings in by_seller.items():
        if len(listings) < threshold:
            continue
        risky += 1
        logger.warning(
            "Risky seller detected",
            extra={"seller": mask_email(seller), "chargebacks": len(listings)},
        )
        for listing in listings:
            if listing.seller_risk_flag:
                continue
            clients.records.patch(listing.id, {"seller_risk_flag": True})
            flagged.append(listing.id)
            log_audit(
                actor="system",
                action="SELLER_RISK_FLAGGED",
                listing_id=listing.id,
                data={"seller_email": seller, "chargebacks": len(listings)},
            )

    return {
        "ok": True,
        "scanned": len(records),
        "risky_sellers": risky,
        "flagged_listing_ids": flagged,
    }


__all__ = ["flag_risky_sellers"]
