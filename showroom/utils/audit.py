"""Audit logging helper utilities."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from showroom.utils.masking import mask_email, mask_token
from showroom.utils.time import utcnow

audit_logger = logging.getLogger("showroom.audit")

SENSITIVE_KEYS = {
    "email",
    "buyer_email",
    "seller_email",
    "token",
    "pickup_qr_token",
    "pickup_qr_payload",
    "payload",
    "qr",
    "passcode",
    "stripe_account_id",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key.endswith("email"):
        return mask_email(value)

    if key in {"token", "pickup_qr_token", "passcode"}:
        return "***"

    if key in {"payload", "qr", "pickup_qr_payload"}:
        # Pickup payloads embed the single-use token.
        return "***"

    if key == "stripe_account_id":
        return mask_token(value)

    return value


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with obvious PII and credential fields masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    *,
    actor: str,
    action: str,
    listing_id: str | None,
    data: Mapping[str, Any] | None = None,
    level: int = logging.INFO,
) -> None:
    """Emit a structured audit line for a state-changing operation."""

    audit_logger.log(
        level,
        action,
        extra={
            "actor": actor,
            "action": action,
            "listing_id": listing_id,
            "data": sanitize_payload_for_audit(dict(data or {})),
            "at": utcnow().isoformat(),
        },
    )


__all__ = ["sanitize_payload_for_audit", "log_audit"]
