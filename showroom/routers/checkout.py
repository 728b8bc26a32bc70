"""Public checkout endpoint."""
from fastapi import APIRouter, Depends, status

from showroom.clients import Clients, get_clients
from showroom.schemas.checkout import CheckoutSessionCreate, CheckoutSessionRead
from showroom.services import checkout as checkout_service

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/session", response_model=CheckoutSessionRead, status_code=status.HTTP_200_OK)
def create_checkout_session(payload: CheckoutSessionCreate, clients: Clients = Depends(get_clients)):
    """Open a Stripe Checkout session for an active listing."""

    return checkout_service.create_checkout_session(clients, payload.listing_id)
