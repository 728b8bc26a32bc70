"""Scheduled jobs run by APScheduler or an external cron."""
from __future__ import annotations

import logging

from showroom.clients import get_clients
from showroom.core.runtime_state import record_sweep
from showroom.services.payouts import release_held_payouts
from showroom.services.risk import flag_risky_sellers
from showroom.utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def release_held_payouts_once() -> dict:
    """Run one payout sweep with the shared adapters."""

    try:
        summary = release_held_payouts(get_clients(), actor="scheduler")
    except UpstreamError as exc:
        logger.error(
            "Scheduled payout sweep could not query candidates",
            extra={"operation": exc.operation, "error": exc.message},
        )
        return {"ok": False, "error": exc.message}
    record_sweep(
        summary.started_at,
        summary.finished_at,
        {
            "candidates": summary.candidates,
            "processed": summary.processed,
            "healed": summary.healed,
            "skipped": summary.skipped,
            "failed": summary.failed,
        },
    )
    return {"ok": True, **summary.as_dict()}


def flag_risky_sellers_once() -> dict:
    try:
        return flag_risky_sellers(get_clients())
    except UpstreamError as exc:
        logger.error(
            "Scheduled risk scan failed",
            extra={"operation": exc.operation, "error": exc.message},
        )
        return {"ok": False, "error": exc.message}


__all__ = ["release_held_payouts_once", "flag_risky_sellers_once"]
