"""Routes for Stripe webhook handling."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status

from showroom.clients import Clients, get_clients
from showroom.services import psp_webhooks

router = APIRouter(prefix="/stripe", tags=["psp"])


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def stripe_webhook(request: Request, clients: Clients = Depends(get_clients)) -> dict[str, Any]:
    return await psp_webhooks.handle_stripe_webhook(request, clients)


__all__ = ["router"]
