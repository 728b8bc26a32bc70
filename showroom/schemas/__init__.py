"""Schema package exports."""
from .admin import (
    AdminPayoutRequest,
    AdminTokenRead,
    AdminTokenRequest,
    OnboardingLinkRequest,
    OnboardingStart,
    PayoutReleaseRequest,
)
from .checkout import CheckoutSessionCreate, CheckoutSessionRead
from .pickup import PickupVerify

__all__ = [
    "AdminPayoutRequest",
    "AdminTokenRead",
    "AdminTokenRequest",
    "OnboardingLinkRequest",
    "OnboardingStart",
    "PayoutReleaseRequest",
    "CheckoutSessionCreate",
    "CheckoutSessionRead",
    "PickupVerify",
]
