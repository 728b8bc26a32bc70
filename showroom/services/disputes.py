"""Chargeback and refund handling: payout freezes and operator resolution."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from fastapi import HTTPException, status

from showroom.clients import Clients
from showroom.models.listing import Listing, PayoutStatus
from showroom.services.notifications import alert_ops, deliver, dispute_resolved_email
from showroom.services.records import Eq, IsTrue
from showroom.utils.audit import log_audit
from showroom.utils.errors import error_response
from showroom.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

DISPUTE_EVENTS = frozenset(
    {
        "charge.dispute.created",
        "charge.dispute.updated",
        "charge.dispute.closed",
        "charge.dispute.funds_withdrawn",
        "charge.dispute.funds_reinstated",
    }
)
REFUND_EVENT = "charge.refunded"
CLOSED_DISPUTE_STATUSES = frozenset({"won", "lost"})


def _payment_intent_id(obj: Mapping[str, Any]) -> str | None:
    intent = obj.get("payment_intent")
    if isinstance(intent, Mapping):
        return intent.get("id")
    return intent or None


def _reinstated_fields(listing: Listing, dispute_status: str, now: datetime) -> dict[str, Any]:
    restored = PayoutStatus.PAID if listing.stripe_transfer_id else PayoutStatus.PENDING
    return {
        "chargeback_flag": False,
        "seller_payout_status": restored.value,
        "payout_risk": False,
        "dispute_status": dispute_status,
        "dispute_resolved_at": to_iso(now),
    }


def _frozen_fields(listing: Listing, dispute_status: str, dispute_id: str | None) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "chargeback_flag": True,
        "seller_payout_status": PayoutStatus.BLOCKED.value,
        "dispute_status": dispute_status,
    }
    if dispute_id:
        fields["dispute_id"] = dispute_id
    if listing.stripe_transfer_id:
        # Transfer already executed.
        fields["payout_risk"] = True
    return fields


def _is_stale_dispute_event(listing: Listing, dispute_id: str | None, dispute_status: str) -> bool:
    """A non-final update for a dispute already closed on this listing."""

    if not dispute_id or listing.dispute_id != dispute_id:
        return False
    stored = (listing.dispute_status or "").strip().lower()
    return stored in CLOSED_DISPUTE_STATUSES and dispute_status not in CLOSED_DISPUTE_STATUSES


def handle_dispute_event(
    clients: Clients,
    event_type: str,
    obj: Mapping[str, Any],
    *,
    event_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Apply a dispute or refund event to the listing paid with the same payment intent."""

    settings = clients.settings
    now = now or utcnow()
    is_refund = event_type == REFUND_EVENT
    dispute_id = None if is_refund else obj.get("id")
    dispute_status = "refunded" if is_refund else str(obj.get("status") or "open")
    won = not is_refund and dispute_status == "won"
    intent_id = _payment_intent_id(obj)

    facts: dict[str, Any] = {
        "event_type": event_type,
        "event_id": event_id,
        "payment_intent": intent_id,
        "dispute_id": dispute_id,
        "dispute_status": dispute_status,
        "amount": obj.get("amount"),
        "reason": obj.get("reason"),
    }

    if not intent_id:
        logger.warning("Dispute event without payment intent", extra=facts)
        alert_ops(clients.notifier, settings, "Dispute event without payment intent", facts)
        return {"handled": False, "reason": "missing_payment_intent"}

    records = clients.records.query(Eq("stripe_payment_intent_id", intent_id), max_records=10)
    if not records:
        logger.warning("Dispute event matched no listing", extra=facts)
        alert_ops(clients.notifier, settings, "Dispute event matched no listing", facts)
        return {"handled": False, "reason": "listing_not_found"}

    updated: list[str] = []
    stale: list[str] = []
    for record in records:
        listing = Listing.from_record(record)
        if _is_stale_dispute_event(listing, dispute_id, dispute_status):
            logger.info(
                "Ignoring out-of-order dispute event",
                extra={**facts, "listing_id": listing.id, "stored_dispute_status": listing.dispute_status},
            )
            stale.append(listing.id)
            continue
        if won:
            fields = _reinstated_fields(listing, dispute_status, now)
            action = "DISPUTE_WON"
        else:
            fields = _frozen_fields(listing, dispute_status, dispute_id)
            action = "REFUND_RECORDED" if is_refund else "DISPUTE_FROZEN"
        clients.records.patch(listing.id, fields)
        updated.append(listing.id)
        log_audit(
            actor="stripe",
            action=action,
            listing_id=listing.id,
            data={**facts, "payout_risk": fields.get("payout_risk", False)},
            level=logging.INFO if won else logging.WARNING,
        )
        alert_ops(
            clients.notifier,
            settings,
            f"{'Dispute won' if won else ('Refund' if is_refund else 'Dispute')} on listing {listing.id}",
            {
                **facts,
                "listing_id": listing.id,
                "title": listing.title,
                "transfer_id": listing.stripe_transfer_id,
                "payout_risk": bool(listing.stripe_transfer_id) and not won,
            },
        )

    result: dict[str, Any] = {"handled": True, "listing_ids": updated, "frozen": not won}
    if stale:
        result["stale_listing_ids"] = stale
    return result


def _dispute_row(listing: Listing) -> dict[str, Any]:
    return {
        "id": listing.id,
        "title": listing.title or "Unknown Product",
        "buyer_email": listing.buyer_email or "",
        "seller_email": listing.seller_email or "",
        "amount": str(listing.price) if listing.price is not None else None,
        "stripe_session_id": listing.stripe_session_id or "",
        "stripe_payment_intent_id": listing.stripe_payment_intent_id or "",
        "dispute_id": listing.dispute_id or "",
        "dispute_status": listing.dispute_status or "open",
        "payout_status": listing.raw_payout_status or PayoutStatus.PENDING.value,
        "payout_risk": listing.payout_risk,
        "pickup_confirmed": listing.pickup_confirmed,
        "chargeback_flag": listing.chargeback_flag,
        "paid_at": to_iso(listing.paid_at) if listing.paid_at else None,
    }


def list_disputes(clients: Clients) -> dict[str, Any]:
    records = clients.records.query(IsTrue("chargeback_flag"))
    disputes = [_dispute_row(Listing.from_record(record)) for record in records]
    return {"ok": True, "count": len(disputes), "disputes": disputes}


def resolve_dispute(clients: Clients, listing_id: str, *, actor: str = "admin") -> dict[str, Any]:
    """Operator closes a dispute in the seller's favour and re-enables the payout."""

    listing = Listing.from_record(clients.records.get(listing_id))
    if not listing.chargeback_flag:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "NO_ACTIVE_DISPUTE",
                "No active dispute.",
                {"dispute_status": listing.dispute_status},
            ),
        )

    fields = _reinstated_fields(listing, "resolved", utcnow())
    clients.records.patch(listing_id, fields)
    log_audit(
        actor=actor,
        action="DISPUTE_RESOLVED",
        listing_id=listing_id,
        data={"seller_payout_status": fields["seller_payout_status"]},
    )
    deliver(clients.notifier, listing.seller_email, dispute_resolved_email(listing, clients.settings))
    return {"ok": True, "listing_id": listing_id, "seller_payout_status": fields["seller_payout_status"]}


__all__ = [
    "DISPUTE_EVENTS",
    "REFUND_EVENT",
    "handle_dispute_event",
    "list_disputes",
    "resolve_dispute",
]
