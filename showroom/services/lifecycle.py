"""Listing state machine: transition table and payout guards."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from showroom.models.listing import Listing, ListingStatus

ALLOWED_TRANSITIONS: dict[ListingStatus, frozenset[ListingStatus]] = {
    ListingStatus.ACTIVE: frozenset({ListingStatus.RESERVED}),
    ListingStatus.RESERVED: frozenset({ListingStatus.PAID_PENDING_PICKUP}),
    ListingStatus.PAID_PENDING_PICKUP: frozenset({ListingStatus.PICKED_UP}),
    ListingStatus.PICKED_UP: frozenset({ListingStatus.PAYOUT_SENT}),
}

REASON_CHARGEBACK = "Chargeback exists"
REASON_PICKUP = "Pickup not confirmed"
REASON_MISSING_HOLD = "Missing payout hold date"
REASON_HOLD_WINDOW = "Hold window not complete"


def can_transition(current: ListingStatus | None, target: ListingStatus | None) -> bool:
    """Return True when ``current -> target`` is an allowed single step."""

    if current is None or target is None:
        return False
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition_path(current: ListingStatus | None, target: ListingStatus) -> list[ListingStatus] | None:
    """Return the chain of allowed steps leading from ``current`` to ``target``.

    Each step is checked with :func:`can_transition`; ``None`` means unreachable.
    An empty list means the listing is already at ``target``.
    """

    if current is None:
        return None
    path: list[ListingStatus] = []
    state = current
    while state != target:
        nxt = next(iter(ALLOWED_TRANSITIONS.get(state, frozenset())), None)
        if nxt is None or not can_transition(state, nxt):
            return None
        path.append(nxt)
        state = nxt
    return path


@dataclass(frozen=True)
class PayoutEligibility:
    ok: bool
    reason: str | None = None


def is_payout_allowed(listing: Listing, now: datetime) -> PayoutEligibility:
    """Evaluate the payout guard; the first failing check provides the reason."""

    if listing.chargeback_flag:
        return PayoutEligibility(False, REASON_CHARGEBACK)
    if not listing.pickup_confirmed:
        return PayoutEligibility(False, REASON_PICKUP)
    if listing.payout_eligible_at is None:
        return PayoutEligibility(False, REASON_MISSING_HOLD)
    if now < listing.payout_eligible_at:
        return PayoutEligibility(False, REASON_HOLD_WINDOW)
    return PayoutEligibility(True)


def is_paid_like(raw_status: str | None) -> bool:
    """Return True when upstream status text reads as a paid, not yet collected listing."""

    return ListingStatus.parse(raw_status) == ListingStatus.PAID_PENDING_PICKUP


__all__ = [
    "ALLOWED_TRANSITIONS",
    "REASON_CHARGEBACK",
    "REASON_PICKUP",
    "REASON_MISSING_HOLD",
    "REASON_HOLD_WINDOW",
    "PayoutEligibility",
    "can_transition",
    "transition_path",
    "is_payout_allowed",
    "is_paid_like",
]
