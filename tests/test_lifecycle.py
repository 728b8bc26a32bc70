"""Tests for the listing state machine."""
from datetime import timedelta

import pytest

from showroom.models.listing import Listing, ListingStatus
from showroom.services.lifecycle import (
    REASON_CHARGEBACK,
    REASON_HOLD_WINDOW,
    REASON_MISSING_HOLD,
    REASON_PICKUP,
    can_transition,
    is_paid_like,
    is_payout_allowed,
    transition_path,
)
from showroom.utils.time import to_iso, utcnow


def _listing(**fields) -> Listing:
    return Listing.from_record({"id": "recLIFECYCLE01", "fields": fields})


@pytest.mark.parametrize(
    "current, target",
    [
        (ListingStatus.ACTIVE, ListingStatus.RESERVED),
        (ListingStatus.RESERVED, ListingStatus.PAID_PENDING_PICKUP),
        (ListingStatus.PAID_PENDING_PICKUP, ListingStatus.PICKED_UP),
        (ListingStatus.PICKED_UP, ListingStatus.PAYOUT_SENT),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (ListingStatus.ACTIVE, ListingStatus.PICKED_UP),
        (ListingStatus.ACTIVE, ListingStatus.PAYOUT_SENT),
        (ListingStatus.PAID_PENDING_PICKUP, ListingStatus.PAYOUT_SENT),
        (ListingStatus.PAYOUT_SENT, ListingStatus.PICKED_UP),
        (ListingStatus.REFUNDED, ListingStatus.ACTIVE),
        (ListingStatus.PICKED_UP, ListingStatus.PICKED_UP),
        (None, ListingStatus.RESERVED),
    ],
)
def test_skip_and_backward_transitions_rejected(current, target):
    assert not can_transition(current, target)


def test_transition_path_from_active_to_paid_walks_each_edge():
    path = transition_path(ListingStatus.ACTIVE, ListingStatus.PAID_PENDING_PICKUP)
    assert path == [ListingStatus.RESERVED, ListingStatus.PAID_PENDING_PICKUP]
    assert transition_path(ListingStatus.PAID_PENDING_PICKUP, ListingStatus.PAID_PENDING_PICKUP) == []
    assert transition_path(ListingStatus.REFUNDED, ListingStatus.PAID_PENDING_PICKUP) is None
    assert transition_path(ListingStatus.PAYOUT_SENT, ListingStatus.PAID_PENDING_PICKUP) is None


def test_payout_guard_reasons_in_order():
    now = utcnow()
    past = to_iso(now - timedelta(hours=1))
    future = to_iso(now + timedelta(hours=1))

    assert is_payout_allowed(
        _listing(chargeback_flag=True, pickup_confirmed=True, payout_eligible_at=past), now
    ).reason == REASON_CHARGEBACK
    assert is_payout_allowed(_listing(payout_eligible_at=past), now).reason == REASON_PICKUP
    assert is_payout_allowed(_listing(pickup_confirmed=True), now).reason == REASON_MISSING_HOLD
    assert (
        is_payout_allowed(_listing(pickup_confirmed=True, payout_eligible_at=future), now).reason
        == REASON_HOLD_WINDOW
    )

    allowed = is_payout_allowed(_listing(pickup_confirmed=True, payout_eligible_at=past), now)
    assert allowed.ok and allowed.reason is None


def test_hold_window_boundary_is_inclusive():
    now = utcnow().replace(microsecond=0)
    listing = _listing(pickup_confirmed=True, payout_eligible_at=to_iso(now))
    assert is_payout_allowed(listing, now).ok


def test_reasons_are_verbatim():
    assert REASON_CHARGEBACK == "Chargeback exists"
    assert REASON_PICKUP == "Pickup not confirmed"
    assert REASON_MISSING_HOLD == "Missing payout hold date"
    assert REASON_HOLD_WINDOW == "Hold window not complete"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Paid – Pending Pickup", True),
        ("Paid - Pending Pickup", True),
        ("paid\u2014pending pickup", True),
        ("Paid", True),
        ("PAID (awaiting pickup)", True),
        ("Active", False),
        ("Picked Up", False),
        ("Refund pending", False),
        ("", False),
        (None, False),
    ],
)
def test_is_paid_like(text, expected):
    assert is_paid_like(text) is expected
