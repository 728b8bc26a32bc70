"""Admin authentication dependencies."""
from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header, HTTPException, status

from showroom.config import Settings, get_settings
from showroom.utils.admin_token import sign_admin_token, verify_admin_token
from showroom.utils.audit import log_audit
from showroom.utils.errors import error_response

logger = logging.getLogger(__name__)


def _extract_token(
    authorization: str | None = Header(default=None),
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> str | None:
    """Read the token from ``Authorization: Bearer ...`` or ``X-Admin-Token``."""
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    if x_admin_token:
        return x_admin_token.strip()
    return None


def _settings_dependency() -> Settings:
    return get_settings()


def require_admin(
    token: str | None = Depends(_extract_token),
    settings: Settings = Depends(_settings_dependency),
) -> str:
    """Accept the shared admin secret or an unexpired signed admin token.

    Returns the actor name recorded in audit lines.
    """
    shared = settings.ADMIN_SECRET_TOKEN
    signing = settings.ADMIN_TOKEN_SIGNING_SECRET
    if not shared and not signing:
        logger.error("Admin authentication is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response(
                "ADMIN_AUTH_NOT_CONFIGURED",
                "Admin authentication is not configured.",
            ),
        )
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Admin token required."),
        )
    if shared and hmac.compare_digest(token.encode("utf-8"), shared.encode("utf-8")):
        return "admin-secret"
    if signing and verify_admin_token(token, signing):
        return "admin-session"
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error_response("UNAUTHORIZED", "Invalid or expired admin token."),
    )


def issue_admin_token(passcode: str, settings: Settings) -> dict[str, object]:
    """Exchange the operator passcode for a short-lived signed token."""

    expected = settings.ADMIN_LOGIN_PASSCODE
    signing = settings.ADMIN_TOKEN_SIGNING_SECRET
    if not expected or not signing:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response(
                "ADMIN_LOGIN_NOT_CONFIGURED",
                "Admin login is not configured.",
            ),
        )
    if not passcode or not hmac.compare_digest(passcode.encode("utf-8"), expected.encode("utf-8")):
        log_audit(
            actor="anonymous",
            action="ADMIN_LOGIN_FAILED",
            listing_id=None,
            level=logging.WARNING,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("INVALID_PASSCODE", "Invalid passcode."),
        )
    token, expires_at = sign_admin_token(signing, settings.ADMIN_TOKEN_TTL_SECONDS)
    log_audit(actor="admin-session", action="ADMIN_TOKEN_ISSUED", listing_id=None, data={"exp": expires_at})
    return {"ok": True, "token": token, "exp": expires_at}


__all__ = ["require_admin", "issue_admin_token"]
