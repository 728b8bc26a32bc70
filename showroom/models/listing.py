"""Listing records as read from the record store."""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from showroom.utils.time import parse_iso_utc

_DASHES = re.compile(r"\s*[‐-―\-]\s*")
_SPACES = re.compile(r"\s+")


def _normalize_text(value: str) -> str:
    text = _DASHES.sub(" - ", value.strip())
    return _SPACES.sub(" ", text).lower()


class ListingStatus(str, Enum):
    """Lifecycle state of a listing."""

    ACTIVE = "Active"
    RESERVED = "Reserved"
    PAID_PENDING_PICKUP = "Paid – Pending Pickup"
    PICKED_UP = "Picked Up"
    PAYOUT_SENT = "Payout Sent"
    REFUNDED = "Refunded"

    @classmethod
    def parse(cls, value: Any) -> "ListingStatus | None":
        """Map upstream status text onto the enum, tolerating historical spellings."""

        if isinstance(value, ListingStatus):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        text = _normalize_text(value)
        exact = _STATUS_ALIASES.get(text)
        if exact is not None:
            return exact
        if any(word in text for word in _NOT_PAID_WORDS):
            return None
        if "paid" in text or "pending pickup" in text:
            return cls.PAID_PENDING_PICKUP
        return None


# Free-form text mentioning these is never read as a paid listing.
_NOT_PAID_WORDS = ("payout", "refund", "unpaid")

_STATUS_ALIASES: dict[str, ListingStatus] = {
    _normalize_text(member.value): member for member in ListingStatus
}
_STATUS_ALIASES.update(
    {
        "paid": ListingStatus.PAID_PENDING_PICKUP,
        "pending pickup": ListingStatus.PAID_PENDING_PICKUP,
        "paid pending pickup": ListingStatus.PAID_PENDING_PICKUP,
        "pickup confirmed": ListingStatus.PICKED_UP,
        "picked - up": ListingStatus.PICKED_UP,
        "pickedup": ListingStatus.PICKED_UP,
        "payout paid": ListingStatus.PAYOUT_SENT,
        "refund": ListingStatus.REFUNDED,
    }
)


class PayoutStatus(str, Enum):
    """Seller payout sub-status."""

    PENDING = "Pending"
    READY = "Ready"
    PROCESSING = "Processing"
    PAID = "Paid"
    FAILED = "Failed"
    BLOCKED = "Blocked"
    REFUNDED = "Refunded"

    @classmethod
    def parse(cls, value: Any) -> "PayoutStatus | None":
        if isinstance(value, PayoutStatus):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        lowered = _normalize_text(value)
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


def parse_amount(value: Any) -> Decimal | None:
    """Return a decimal amount from an upstream number or currency-formatted text."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parse_iso_utc(value.strip())
    except ValueError:
        return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        # Lookup fields arrive as single-element arrays.
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


class Listing(BaseModel):
    """Typed view over a listing record."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: ListingStatus | None = None
    raw_status: str = ""
    title: str | None = None
    price: Decimal | None = None
    seller_payout_amount: Decimal | None = None
    locked: bool = False
    chargeback_flag: bool = False
    pickup_qr_token: str | None = None
    pickup_qr_payload: str | None = None
    pickup_confirmed: bool = False
    pickup_confirmed_at: datetime | None = None
    pickup_address: str | None = None
    pickup_window_start: str | None = None
    pickup_window_end: str | None = None
    paid_at: datetime | None = None
    payout_eligible_at: datetime | None = None
    payout_attempted_at: datetime | None = None
    payout_sent_at: datetime | None = None
    seller_payout_status: PayoutStatus | None = None
    raw_payout_status: str = ""
    payout_error: str | None = None
    payout_risk: bool = False
    stripe_account_id: str | None = None
    stripe_transfer_id: str | None = None
    stripe_session_id: str | None = None
    stripe_payment_intent_id: str | None = None
    stripe_onboarding_status: str | None = None
    dispute_status: str | None = None
    dispute_id: str | None = None
    dispute_resolved_at: datetime | None = None
    seller_risk_flag: bool = False
    buyer_email: str | None = None
    seller_email: str | None = None
    seller_name: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Listing":
        fields: dict[str, Any] = dict(record.get("fields") or {})
        raw_status = _as_text(fields.get("status")) or ""
        raw_payout_status = _as_text(fields.get("seller_payout_status")) or ""
        return cls(
            id=str(record["id"]),
            status=ListingStatus.parse(raw_status),
            raw_status=raw_status,
            title=_as_text(fields.get("title")) or _as_text(fields.get("product_title")),
            price=parse_amount(fields.get("price")),
            seller_payout_amount=parse_amount(fields.get("seller_payout_amount")),
            locked=bool(fields.get("locked")),
            chargeback_flag=bool(fields.get("chargeback_flag")),
            pickup_qr_token=_as_text(fields.get("pickup_qr_token")),
            pickup_qr_payload=_as_text(fields.get("pickup_qr_payload")),
            pickup_confirmed=bool(fields.get("pickup_confirmed")),
            pickup_confirmed_at=_parse_datetime(fields.get("pickup_confirmed_at")),
            pickup_address=_as_text(fields.get("pickup_address")),
            pickup_window_start=_as_text(fields.get("pickup_window_start")),
            pickup_window_end=_as_text(fields.get("pickup_window_end")),
            paid_at=_parse_datetime(fields.get("paid_at")),
            payout_eligible_at=_parse_datetime(fields.get("payout_eligible_at")),
            payout_attempted_at=_parse_datetime(fields.get("payout_attempted_at")),
            payout_sent_at=_parse_datetime(fields.get("payout_sent_at")),
            seller_payout_status=PayoutStatus.parse(raw_payout_status),
            raw_payout_status=raw_payout_status,
            payout_error=_as_text(fields.get("payout_error")),
            payout_risk=bool(fields.get("payout_risk")),
            stripe_account_id=_as_text(fields.get("stripe_account_id")),
            stripe_transfer_id=_as_text(fields.get("stripe_transfer_id")),
            stripe_session_id=_as_text(fields.get("stripe_session_id")),
            stripe_payment_intent_id=_as_text(fields.get("stripe_payment_intent_id")),
            stripe_onboarding_status=_as_text(fields.get("stripe_onboarding_status")),
            dispute_status=_as_text(fields.get("dispute_status")),
            dispute_id=_as_text(fields.get("dispute_id")),
            dispute_resolved_at=_parse_datetime(fields.get("dispute_resolved_at")),
            seller_risk_flag=bool(fields.get("seller_risk_flag")),
            buyer_email=_as_text(fields.get("buyer_email")),
            seller_email=_as_text(fields.get("seller_email")) or _as_text(fields.get("showroom_email")),
            seller_name=_as_text(fields.get("seller_name")),
            fields=fields,
        )

    @property
    def display_title(self) -> str:
        return self.title or "your item"

    def admin_view(self) -> dict[str, Any]:
        """Return the operator-facing projection (no pickup secrets)."""

        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value if self.status else self.raw_status,
            "price": str(self.price) if self.price is not None else None,
            "seller_payout_amount": (
                str(self.seller_payout_amount) if self.seller_payout_amount is not None else None
            ),
            "locked": self.locked,
            "chargeback_flag": self.chargeback_flag,
            "payout_risk": self.payout_risk,
            "seller_risk_flag": self.seller_risk_flag,
            "pickup_confirmed": self.pickup_confirmed,
            "pickup_confirmed_at": _iso(self.pickup_confirmed_at),
            "paid_at": _iso(self.paid_at),
            "payout_eligible_at": _iso(self.payout_eligible_at),
            "payout_sent_at": _iso(self.payout_sent_at),
            "seller_payout_status": (
                self.seller_payout_status.value if self.seller_payout_status else self.raw_payout_status
            ),
            "payout_error": self.payout_error,
            "stripe_transfer_id": self.stripe_transfer_id,
            "has_payout_account": bool(self.stripe_account_id),
            "stripe_onboarding_status": self.stripe_onboarding_status,
            "dispute_status": self.dispute_status,
            "dispute_id": self.dispute_id,
            "seller_name": self.seller_name,
            "pickup_address": self.pickup_address,
            "pickup_window_start": self.pickup_window_start,
            "pickup_window_end": self.pickup_window_end,
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


__all__ = ["Listing", "ListingStatus", "PayoutStatus", "parse_amount"]
