"""Schemas for checkout initiation."""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CheckoutSessionCreate(BaseModel):
    listing_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("listingId", "listing_id", "recordId"),
    )

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionRead(BaseModel):
    url: str
    session_id: str
