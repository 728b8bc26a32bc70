"""Signed, short-lived admin session tokens.

A token is ``base64url(json{iat, exp}) + "." + base64url(HMAC-SHA256(secret, payload))``
with the ``=`` padding stripped from both halves.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _signature(secret: str, payload_b64: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def sign_admin_token(secret: str, ttl_seconds: int, *, now: int | None = None) -> tuple[str, int]:
    """Return ``(token, exp)`` for a new admin token."""

    issued_at = int(now if now is not None else time.time())
    expires_at = issued_at + int(ttl_seconds)
    body = json.dumps({"iat": issued_at, "exp": expires_at}, separators=(",", ":"))
    payload_b64 = _b64url_encode(body.encode("utf-8"))
    return f"{payload_b64}.{_signature(secret, payload_b64)}", expires_at


def verify_admin_token(token: str, secret: str, *, now: int | None = None) -> bool:
    if not token or not secret or token.count(".") != 1:
        return False
    payload_b64, sig = token.split(".", 1)
    if not payload_b64 or not sig:
        return False
    if not hmac.compare_digest(_signature(secret, payload_b64), sig):
        return False
    try:
        claims = json.loads(_b64url_decode(payload_b64))
    except (ValueError, UnicodeDecodeError):
        return False
    if not isinstance(claims, dict):
        return False
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return False
    current = int(now if now is not None else time.time())
    return current < exp


__all__ = ["sign_admin_token", "verify_admin_token"]
