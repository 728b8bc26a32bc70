"""Payout settlement: idempotent release of held seller payouts."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from fastapi import HTTPException, status

from showroom.clients import Clients
from showroom.config import RETRYABLE_PAYOUT_STATUSES
from showroom.models.listing import Listing, ListingStatus, PayoutStatus
from showroom.services import lifecycle
from showroom.services.notifications import deliver, seller_paid_email
from showroom.services.psp_stripe import payout_idempotency_key, to_cents, transfer_group_for
from showroom.services.records import And, Before, Eq, IsBlank, IsTrue, Or
from showroom.utils.audit import log_audit
from showroom.utils.errors import LedgerError, UpstreamError, error_response
from showroom.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

PROCESSED = "processed"
HEALED = "healed"
ALREADY_SETTLED = "already_settled"
SKIPPED = "skipped"
INVALID = "invalid"
FAILED = "failed"

HISTORY_FILTERS = ("All", "Paid", "Failed", "Pending")
HISTORY_MAX_LIMIT = 200


@dataclass
class SettlementOutcome:
    listing_id: str
    result: str
    reason: str | None = None
    transfer_id: str | None = None
    amount_cents: int | None = None

    @property
    def attempted(self) -> bool:
        """True when the settlement reached the ledger or recovered a prior transfer."""

        return self.result in {PROCESSED, HEALED, FAILED}

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SweepSummary:
    started_at: str
    finished_at: str | None = None
    candidates: int = 0
    processed: int = 0
    healed: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)

    def record(self, outcome: SettlementOutcome) -> None:
        if outcome.result == PROCESSED:
            self.processed += 1
        elif outcome.result == HEALED:
            self.healed += 1
        elif outcome.result in {SKIPPED, ALREADY_SETTLED}:
            self.skipped += 1
        else:
            self.failed += 1
        self.results.append(outcome.as_dict())

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _record_failure(clients: Clients, listing_id: str, message: str) -> None:
    try:
        clients.records.patch(
            listing_id,
            {"seller_payout_status": PayoutStatus.FAILED.value, "payout_error": message[:500]},
        )
    except UpstreamError:
        logger.error(
            "Could not record payout failure",
            extra={"listing_id": listing_id, "payout_error": message},
        )


def _success_fields(transfer_id: str, now: datetime) -> dict[str, Any]:
    return {
        "status": ListingStatus.PAYOUT_SENT.value,
        "seller_payout_status": PayoutStatus.PAID.value,
        "stripe_transfer_id": transfer_id,
        "payout_sent_at": to_iso(now),
        "payout_error": "",
    }


def _find_existing_transfer(clients: Clients, listing: Listing) -> dict[str, Any] | None:
    for transfer in clients.ledger.list_transfers_by_group(transfer_group_for(listing.id)):
        metadata = transfer.get("metadata") or {}
        if transfer.get("reversed"):
            continue
        if metadata.get("listingId") == listing.id:
            return transfer
    return None


def _validation_error(listing: Listing) -> str | None:
    amount = listing.seller_payout_amount
    if amount is None or amount <= 0 or to_cents(amount) <= 0:
        return "Invalid seller payout amount"
    if listing.price is not None and amount > listing.price:
        return "Seller payout amount exceeds price"
    if not listing.stripe_account_id:
        return "Missing seller Stripe account"
    return None


def settle_listing(
    clients: Clients,
    listing: Listing,
    *,
    now: datetime | None = None,
    actor: str = "system",
) -> SettlementOutcome:
    """Release the held payout for one listing, at most once.

    A stored transfer id (or a ``Paid`` payout status) is treated as proof that the
    payout already happened. Otherwise the listing's transfer group is searched so that
    a transfer created by an interrupted earlier attempt is adopted instead of repeated.
    """

    settings = clients.settings
    now = now or utcnow()
    listing_id = listing.id

    if listing.stripe_transfer_id or listing.seller_payout_status == PayoutStatus.PAID:
        return SettlementOutcome(
            listing_id, ALREADY_SETTLED, "Payout already sent", transfer_id=listing.stripe_transfer_id
        )

    if listing.chargeback_flag:
        return SettlementOutcome(listing_id, SKIPPED, lifecycle.REASON_CHARGEBACK)

    problem = _validation_error(listing)
    if problem:
        logger.warning("Payout candidate invalid", extra={"listing_id": listing_id, "reason": problem})
        _record_failure(clients, listing_id, problem)
        return SettlementOutcome(listing_id, INVALID, problem)

    eligibility = lifecycle.is_payout_allowed(listing, now)
    if not eligibility.ok:
        return SettlementOutcome(listing_id, SKIPPED, eligibility.reason)

    if not lifecycle.can_transition(listing.status, ListingStatus.PAYOUT_SENT):
        reason = f"Invalid status transition: {listing.raw_status or 'unknown'} -> {ListingStatus.PAYOUT_SENT.value}"
        logger.warning("Payout transition refused", extra={"listing_id": listing_id, "reason": reason})
        return SettlementOutcome(listing_id, SKIPPED, reason)

    if listing.seller_payout_status == PayoutStatus.PROCESSING:
        stale_before = now - timedelta(minutes=settings.PAYOUT_PROCESSING_STALE_MINUTES)
        if listing.payout_attempted_at is not None and listing.payout_attempted_at > stale_before:
            return SettlementOutcome(listing_id, SKIPPED, "Payout in progress")
        logger.warning("Recovering stale Processing payout", extra={"listing_id": listing_id})

    assert listing.seller_payout_amount is not None and listing.stripe_account_id is not None
    amount_cents = to_cents(listing.seller_payout_amount)
    destination = listing.stripe_account_id

    try:
        existing = _find_existing_transfer(clients, listing)
    except LedgerError as exc:
        _record_failure(clients, listing_id, f"Transfer lookup failed: {exc.message}")
        return SettlementOutcome(listing_id, FAILED, exc.message, amount_cents=amount_cents)

    if existing is not None:
        transfer_id = str(existing.get("id"))
        clients.records.patch(listing_id, _success_fields(transfer_id, now))
        logger.warning(
            "Adopted existing transfer for listing",
            extra={"listing_id": listing_id, "transfer_id": transfer_id},
        )
        log_audit(
            actor=actor,
            action="PAYOUT_HEALED",
            listing_id=listing_id,
            data={"transfer_id": transfer_id},
        )
        return SettlementOutcome(listing_id, HEALED, transfer_id=transfer_id, amount_cents=amount_cents)

    clients.records.patch(
        listing_id,
        {
            "seller_payout_status": PayoutStatus.PROCESSING.value,
            "payout_error": "",
            "payout_attempted_at": to_iso(now),
        },
    )

    try:
        transfer = clients.ledger.create_transfer(
            amount_cents=amount_cents,
            currency=settings.PAYOUT_CURRENCY,
            destination=destination,
            idempotency_key=payout_idempotency_key(listing_id, destination, amount_cents),
            metadata={"listingId": listing_id},
            transfer_group=transfer_group_for(listing_id),
        )
    except LedgerError as exc:
        _record_failure(clients, listing_id, exc.message)
        log_audit(
            actor=actor,
            action="PAYOUT_FAILED",
            listing_id=listing_id,
            data={"amount_cents": amount_cents, "error": exc.message},
            level=logging.WARNING,
        )
        return SettlementOutcome(listing_id, FAILED, exc.message, amount_cents=amount_cents)

    transfer_id = str(transfer.get("id"))
    try:
        clients.records.patch(listing_id, _success_fields(transfer_id, now))
    except UpstreamError:
        # The stale Processing sweep adopts this transfer through the group lookup.
        logger.error(
            "Transfer created but listing update failed",
            extra={"listing_id": listing_id, "transfer_id": transfer_id},
        )
        return SettlementOutcome(
            listing_id,
            FAILED,
            "Transfer created but record update failed",
            transfer_id=transfer_id,
            amount_cents=amount_cents,
        )

    log_audit(
        actor=actor,
        action="PAYOUT_SENT",
        listing_id=listing_id,
        data={"transfer_id": transfer_id, "amount_cents": amount_cents},
    )
    logger.info(
        "Payout complete",
        extra={"listing_id": listing_id, "transfer_id": transfer_id, "amount_cents": amount_cents},
    )
    deliver(clients.notifier, listing.seller_email, seller_paid_email(listing, settings))
    return SettlementOutcome(listing_id, PROCESSED, transfer_id=transfer_id, amount_cents=amount_cents)


def release_held_payouts(
    clients: Clients,
    *,
    now: datetime | None = None,
    max_records: int | None = None,
    actor: str = "system",
) -> SweepSummary:
    """Settle every picked-up listing whose payout is still pending."""

    now = now or utcnow()
    summary = SweepSummary(started_at=to_iso(now))
    stale_before = now - timedelta(minutes=clients.settings.PAYOUT_PROCESSING_STALE_MINUTES)
    candidates = clients.records.query(
        And(
            IsTrue("pickup_confirmed"),
            Or(
                Eq("seller_payout_status", PayoutStatus.PENDING.value),
                Eq("seller_payout_status", PayoutStatus.READY.value),
                And(
                    Eq("seller_payout_status", PayoutStatus.PROCESSING.value),
                    Or(IsBlank("payout_attempted_at"), Before("payout_attempted_at", stale_before)),
                ),
            ),
        ),
        max_records=max_records,
    )
    summary.candidates = len(candidates)

    for record in candidates:
        listing_id = str(record.get("id"))
        try:
            outcome = settle_listing(clients, Listing.from_record(record), now=now, actor=actor)
        except UpstreamError as exc:
            logger.error(
                "Payout sweep candidate failed",
                extra={"listing_id": listing_id, "operation": exc.operation, "error": exc.message},
            )
            outcome = SettlementOutcome(listing_id, FAILED, exc.message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected payout sweep failure", extra={"listing_id": listing_id})
            outcome = SettlementOutcome(listing_id, FAILED, exc.__class__.__name__)
        summary.record(outcome)

    summary.finished_at = to_iso(utcnow())
    logger.info(
        "Payout sweep finished",
        extra={
            "candidates": summary.candidates,
            "processed": summary.processed,
            "healed": summary.healed,
            "skipped": summary.skipped,
            "failed": summary.failed,
        },
    )
    return summary


def retry_payout(clients: Clients, listing_id: str, *, actor: str = "admin") -> dict[str, Any]:
    """Operator retry of a single payout that is not already paid or in flight."""

    listing = Listing.from_record(clients.records.get(listing_id))
    state = {
        "seller_payout_status": listing.raw_payout_status,
        "stripe_transfer_id": listing.stripe_transfer_id,
        "status": listing.raw_status,
    }
    if listing.stripe_transfer_id or listing.raw_payout_status.strip().lower() not in RETRYABLE_PAYOUT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("PAYOUT_NOT_RETRYABLE", "Payout cannot be retried in its current state.", state),
        )
    if not listing.pickup_confirmed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("PICKUP_NOT_CONFIRMED", lifecycle.REASON_PICKUP, state),
        )

    log_audit(actor=actor, action="PAYOUT_RETRY_REQUESTED", listing_id=listing_id, data=state)
    outcome = settle_listing(clients, listing, actor=actor)
    if outcome.result in {PROCESSED, HEALED}:
        return {"ok": True, **outcome.as_dict()}
    if outcome.result == FAILED:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response("PAYOUT_FAILED", "Payout attempt failed.", outcome.as_dict()),
        )
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=error_response("PAYOUT_NOT_ALLOWED", outcome.reason or "Payout not allowed.", outcome.as_dict()),
    )


def payout_history(clients: Clients, status_filter: str = "All", limit: int = 50) -> dict[str, Any]:
    """Recent payouts for the admin dashboard, newest ``payout_sent_at`` first."""

    status_filter = (status_filter or "All").strip()
    if status_filter not in HISTORY_FILTERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response(
                "INVALID_STATUS_FILTER",
                "Unknown payout status filter.",
                {"allowed": list(HISTORY_FILTERS)},
            ),
        )
    limit = max(1, min(int(limit), HISTORY_MAX_LIMIT))

    where = None
    if status_filter in {"Paid", "Failed"}:
        where = Eq("seller_payout_status", status_filter)
    elif status_filter == "Pending":
        where = And(
            IsTrue("pickup_confirmed"),
            Or(
                IsBlank("seller_payout_status"),
                Eq("seller_payout_status", PayoutStatus.PENDING.value),
                Eq("seller_payout_status", PayoutStatus.READY.value),
            ),
        )

    records = clients.records.query(
        where,
        sort=[("payout_sent_at", "desc")],
        page_size=min(limit, 100),
        max_records=limit,
    )
    items = []
    for record in records:
        listing = Listing.from_record(record)
        items.append(
            {
                "id": listing.id,
                "seller_name": listing.seller_name or "",
                "seller_email": listing.seller_email or "",
                "item_title": listing.title or "",
                "status": listing.raw_status,
                "pickup_confirmed": listing.pickup_confirmed,
                "pickup_confirmed_at": to_iso(listing.pickup_confirmed_at) if listing.pickup_confirmed_at else None,
                "paid_at": to_iso(listing.paid_at) if listing.paid_at else None,
                "seller_payout_status": listing.raw_payout_status,
                "seller_payout_amount": (
                    str(listing.seller_payout_amount) if listing.seller_payout_amount is not None else None
                ),
                "payout_sent_at": to_iso(listing.payout_sent_at) if listing.payout_sent_at else None,
                "payout_error": listing.payout_error or "",
                "stripe_transfer_id": listing.stripe_transfer_id or "",
            }
        )
    return {"ok": True, "status": status_filter, "count": len(items), "records": items}


__all__ = [
    "SettlementOutcome",
    "SweepSummary",
    "settle_listing",
    "release_held_payouts",
    "retry_payout",
    "payout_history",
]
