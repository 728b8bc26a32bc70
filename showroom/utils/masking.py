"""Helpers for masking sensitive values before they reach logs or responses."""
from __future__ import annotations

import hashlib
from typing import Any


def mask_email(value: Any) -> str:
    text = "" if value is None else str(value)
    if "@" not in text:
        return "***@***"
    _, domain = text.split("@", 1)
    return f"***@{domain or '***'}"


def mask_token(value: Any) -> str:
    """Keep only the last four characters of a credential."""

    text = "" if value is None else str(value)
    if len(text) <= 4:
        return "***"
    return f"***{text[-4:]}"


def secret_fingerprint(value: str | None) -> str | None:
    """Return a deterministic marker for a secret instead of the raw value."""

    if not value:
        return None
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return f"sha256:{digest[:8]}"


__all__ = ["mask_email", "mask_token", "secret_fingerprint"]
