"""Health check endpoint."""
from __future__ import annotations

from fastapi import APIRouter

from showroom.config import AppInfo, get_settings
from showroom.core.runtime_state import is_scheduler_active, last_sweep
from showroom.utils.masking import secret_fingerprint

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Health check")
def healthcheck() -> dict[str, object]:
    """Return configuration status for each external collaborator."""

    settings = get_settings()
    stripe_ready = bool(settings.STRIPE_SECRET_KEY)
    webhook_ready = bool(settings.STRIPE_WEBHOOK_SECRET)
    airtable_ready = bool(settings.AIRTABLE_API_KEY and settings.AIRTABLE_BASE_ID)
    degraded = not (stripe_ready and webhook_ready and airtable_ready)
    return {
        "status": "degraded" if degraded else "ok",
        "version": AppInfo().version,
        "env": settings.app_env,
        "stripe": {
            "api_key_configured": stripe_ready,
            "webhook_configured": webhook_ready,
            "webhook_secret_fingerprint": secret_fingerprint(settings.STRIPE_WEBHOOK_SECRET),
        },
        "airtable": {"configured": airtable_ready, "table": settings.AIRTABLE_TABLE},
        "mail": {
            "configured": bool(settings.MAILERSEND_API_KEY and settings.MAILERSEND_FROM_EMAIL),
            "ops_alerts": bool(settings.OPS_ALERT_EMAIL),
        },
        "admin_auth": {
            "shared_secret": bool(settings.ADMIN_SECRET_TOKEN),
            "signed_tokens": bool(settings.ADMIN_TOKEN_SIGNING_SECRET),
            "passcode_login": bool(settings.ADMIN_LOGIN_PASSCODE),
        },
        "scheduler_config_enabled": bool(settings.SCHEDULER_ENABLED),
        "scheduler_running": is_scheduler_active(),
        "last_payout_sweep": last_sweep(),
    }
