"""Tests for record normalisation into listings."""
from decimal import Decimal

import pytest

from showroom.models.listing import Listing, ListingStatus, PayoutStatus, parse_amount


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Active", ListingStatus.ACTIVE),
        ("  active ", ListingStatus.ACTIVE),
        ("Paid – Pending Pickup", ListingStatus.PAID_PENDING_PICKUP),
        ("Paid-Pending Pickup", ListingStatus.PAID_PENDING_PICKUP),
        ("paid   -   pending   pickup", ListingStatus.PAID_PENDING_PICKUP),
        ("Pickup Confirmed", ListingStatus.PICKED_UP),
        ("picked up", ListingStatus.PICKED_UP),
        ("Payout Sent", ListingStatus.PAYOUT_SENT),
        ("Refunded", ListingStatus.REFUNDED),
        ("PAID (awaiting pickup)", ListingStatus.PAID_PENDING_PICKUP),
        ("Pending pickup - paid by card", ListingStatus.PAID_PENDING_PICKUP),
        ("Unpaid", None),
        ("Payout failed", None),
        ("Sold somewhere else", None),
        ("", None),
        (None, None),
    ],
)
def test_status_parse_tolerates_historical_spellings(raw, expected):
    assert ListingStatus.parse(raw) is expected


def test_payout_status_parse_keeps_ready():
    assert PayoutStatus.parse("ready") is PayoutStatus.READY
    assert PayoutStatus.parse(" Processing ") is PayoutStatus.PROCESSING
    assert PayoutStatus.parse("Ready for Payout") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1200, Decimal("1200")),
        (19.99, Decimal("19.99")),
        ("$1,250.50", Decimal("1250.50")),
        ("", None),
        ("n/a", None),
        (None, None),
        (True, None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_from_record_reads_fields_and_fallbacks():
    listing = Listing.from_record(
        {
            "id": "recABC",
            "fields": {
                "status": "Paid - Pending Pickup",
                "product_title": "Marble Lamp",
                "showroom_email": "floor@example.com",
                "price": "300",
                "seller_payout_amount": 250,
                "pickup_confirmed": True,
                "payout_eligible_at": "2026-01-01T00:00:00.000Z",
                "seller_payout_status": "Pending",
            },
        }
    )
    assert listing.status is ListingStatus.PAID_PENDING_PICKUP
    assert listing.raw_status == "Paid - Pending Pickup"
    assert listing.title == "Marble Lamp"
    assert listing.seller_email == "floor@example.com"
    assert listing.price == Decimal("300")
    assert listing.seller_payout_amount == Decimal("250")
    assert listing.payout_eligible_at is not None and listing.payout_eligible_at.tzinfo is not None
    assert listing.seller_payout_status is PayoutStatus.PENDING
    assert not listing.chargeback_flag


def test_admin_view_hides_pickup_secrets():
    listing = Listing.from_record(
        {
            "id": "recSECRET",
            "fields": {
                "status": "Active",
                "pickup_qr_token": "supersecrettoken",
                "pickup_qr_payload": "SMK|recSECRET|supersecrettoken",
                "stripe_account_id": "acct_123",
            },
        }
    )
    view = listing.admin_view()
    assert "supersecrettoken" not in str(view)
    assert view["has_payout_account"] is True
