"""Process-local scheduler state reported by ``/health``."""
from __future__ import annotations

from typing import Any

_scheduler_active = False
_last_sweep: dict[str, Any] | None = None


def set_scheduler_active(active: bool) -> None:
    global _scheduler_active
    _scheduler_active = active


def is_scheduler_active() -> bool:
    return _scheduler_active


def record_sweep(started_at: str, finished_at: str | None, counts: dict[str, int]) -> None:
    """Remember the outcome of the latest scheduled payout sweep in this process."""

    global _last_sweep
    _last_sweep = {"started_at": started_at, "finished_at": finished_at, **counts}


def last_sweep() -> dict[str, Any] | None:
    return dict(_last_sweep) if _last_sweep is not None else None


__all__ = ["set_scheduler_active", "is_scheduler_active", "record_sweep", "last_sweep"]
