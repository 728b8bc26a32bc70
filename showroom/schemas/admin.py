"""Schemas for admin endpoints."""
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

PayoutAction = Literal[
    "verify_pickup_and_payout",
    "get_payout_history",
    "retry_payout",
    "start_onboarding",
    "release_held_payouts",
]


class AdminTokenRequest(BaseModel):
    passcode: str


class AdminTokenRead(BaseModel):
    ok: bool
    token: str
    exp: int


class AdminPayoutRequest(BaseModel):
    """Body of the ``/admin/payouts`` action endpoint."""

    action: PayoutAction
    record_id: str | None = Field(
        default=None, validation_alias=AliasChoices("recordId", "record_id", "listingId")
    )
    payload: str | None = Field(
        default=None, validation_alias=AliasChoices("payload", "qr", "qrPayload")
    )
    status: str = "All"
    limit: int = 50
    seller_email: str | None = Field(
        default=None, validation_alias=AliasChoices("sellerEmail", "seller_email")
    )
    seller_name: str | None = Field(
        default=None, validation_alias=AliasChoices("sellerName", "seller_name")
    )

    model_config = ConfigDict(populate_by_name=True)


class OnboardingStart(BaseModel):
    record_id: str = Field(min_length=1, validation_alias=AliasChoices("recordId", "record_id"))
    seller_email: str | None = Field(
        default=None, validation_alias=AliasChoices("sellerEmail", "seller_email")
    )
    seller_name: str | None = Field(
        default=None, validation_alias=AliasChoices("sellerName", "seller_name")
    )

    model_config = ConfigDict(populate_by_name=True)


class OnboardingLinkRequest(BaseModel):
    stripe_account_id: str = Field(
        min_length=1, validation_alias=AliasChoices("stripe_account_id", "stripeAccountId")
    )

    model_config = ConfigDict(populate_by_name=True)


class PayoutReleaseRequest(BaseModel):
    max_records: int | None = Field(default=None, ge=1, le=1000)
