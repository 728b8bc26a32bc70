"""Pickup QR credential helpers.

The credential printed in the buyer's QR code is ``"<MARKER>|<listingId>|<token>"``.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from urllib.parse import quote, unquote

TOKEN_BYTES = 21  # 28 url-safe characters


@dataclass(frozen=True)
class PickupPayload:
    marker: str
    listing_id: str
    token: str

    @property
    def raw(self) -> str:
        return build_payload(self.marker, self.listing_id, self.token)


class PickupPayloadError(ValueError):
    """The scanned text is not a well-formed pickup credential."""


def generate_token() -> str:
    """Return a fresh high-entropy pickup token."""

    return secrets.token_urlsafe(TOKEN_BYTES)


def build_payload(marker: str, listing_id: str, token: str) -> str:
    return f"{marker}|{listing_id}|{token}"


def parse_payload(
    raw: str,
    *,
    marker: str,
    record_id_prefix: str,
    min_token_length: int,
) -> PickupPayload:
    """Parse and validate scanned QR text.

    Scanners sometimes hand over the URL-encoded text, so the input is decoded first.
    """

    text = unquote((raw or "").strip())
    parts = text.split("|")
    if len(parts) != 3:
        raise PickupPayloadError("Invalid QR format")
    found_marker, listing_id, token = (part.strip() for part in parts)
    if found_marker != marker:
        raise PickupPayloadError("Invalid QR marker")
    if not listing_id or not listing_id.startswith(record_id_prefix) or len(listing_id) <= len(record_id_prefix):
        raise PickupPayloadError("Invalid listing id in QR")
    if len(token) < min_token_length:
        raise PickupPayloadError("Invalid QR token")
    return PickupPayload(marker=found_marker, listing_id=listing_id, token=token)


def qr_image_url(base_url: str, payload: str, size: int = 320) -> str:
    """Return a hosted QR image URL encoding ``payload``."""

    return f"{base_url}?size={size}x{size}&data={quote(payload, safe='')}"


__all__ = [
    "PickupPayload",
    "PickupPayloadError",
    "generate_token",
    "build_payload",
    "parse_payload",
    "qr_image_url",
]
