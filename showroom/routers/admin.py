"""Operator endpoints: pickup verification, payouts, disputes and sellers."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from showroom.clients import Clients, get_clients
from showroom.config import get_settings
from showroom.models.listing import Listing
from showroom.schemas.admin import (
    AdminPayoutRequest,
    AdminTokenRead,
    AdminTokenRequest,
    OnboardingLinkRequest,
    OnboardingStart,
    PayoutReleaseRequest,
)
from showroom.schemas.pickup import PickupVerify
from showroom.security import issue_admin_token, require_admin
from showroom.services import disputes as disputes_service
from showroom.services import onboarding as onboarding_service
from showroom.services import payouts as payouts_service
from showroom.services import pickup as pickup_service
from showroom.services import risk as risk_service
from showroom.utils.errors import error_response

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_field(value: str | None, name: str) -> str:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("INVALID_REQUEST", f"Missing {name}."),
        )
    return value


@router.post("/token", response_model=AdminTokenRead)
def create_admin_token(payload: AdminTokenRequest):
    """Exchange the operator passcode for a signed session token."""

    return issue_admin_token(payload.passcode, get_settings())


@router.post("/payouts")
def payout_action(
    payload: AdminPayoutRequest,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    """Action-style endpoint used by the operator dashboard."""

    if payload.action == "verify_pickup_and_payout":
        raw = _require_field(payload.payload, "payload")
        return pickup_service.verify_pickup(clients, raw, actor=actor)
    if payload.action == "get_payout_history":
        return payouts_service.payout_history(clients, payload.status, payload.limit)
    if payload.action == "retry_payout":
        record_id = _require_field(payload.record_id, "recordId")
        return payouts_service.retry_payout(clients, record_id, actor=actor)
    if payload.action == "start_onboarding":
        record_id = _require_field(payload.record_id, "recordId")
        return onboarding_service.start_onboarding(
            clients,
            record_id,
            seller_email=payload.seller_email,
            seller_name=payload.seller_name,
            actor=actor,
        )
    summary = payouts_service.release_held_payouts(clients, actor=actor)
    return {"ok": True, **summary.as_dict()}


@router.post("/pickup/verify")
def verify_pickup(
    payload: PickupVerify,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return pickup_service.verify_pickup(clients, payload.payload, actor=actor)


@router.get("/listings/{listing_id}")
def get_listing(
    listing_id: str,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    listing = Listing.from_record(clients.records.get(listing_id))
    return {"ok": True, "listing": listing.admin_view()}


@router.get("/payouts/history")
def payout_history(
    status_filter: str = Query(default="All", alias="status"),
    limit: int = Query(default=50),
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return payouts_service.payout_history(clients, status_filter, limit)


@router.post("/payouts/release")
def release_held_payouts(
    payload: PayoutReleaseRequest | None = None,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    """Run one payout sweep now."""

    max_records = payload.max_records if payload else None
    summary = payouts_service.release_held_payouts(clients, max_records=max_records, actor=actor)
    return {"ok": True, **summary.as_dict()}


@router.post("/payouts/{listing_id}/retry")
def retry_payout(
    listing_id: str,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return payouts_service.retry_payout(clients, listing_id, actor=actor)


@router.get("/disputes")
def list_disputes(
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return disputes_service.list_disputes(clients)


@router.post("/disputes/{listing_id}/resolve")
def resolve_dispute(
    listing_id: str,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return disputes_service.resolve_dispute(clients, listing_id, actor=actor)


@router.post("/sellers/risk-scan")
def risk_scan(
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return risk_service.flag_risky_sellers(clients)


@router.post("/sellers/onboarding")
def start_onboarding(
    payload: OnboardingStart,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return onboarding_service.start_onboarding(
        clients,
        payload.record_id,
        seller_email=payload.seller_email,
        seller_name=payload.seller_name,
        actor=actor,
    )


@router.post("/sellers/onboarding-link")
def onboarding_link(
    payload: OnboardingLinkRequest,
    clients: Clients = Depends(get_clients),
    actor: str = Depends(require_admin),
) -> dict[str, Any]:
    return onboarding_service.onboarding_link(clients, payload.stripe_account_id)


__all__ = ["router"]
