"""Schemas for pickup verification."""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PickupVerify(BaseModel):
    payload: str = Field(
        min_length=1,
        validation_alias=AliasChoices("payload", "qr", "qrPayload", "qr_payload"),
    )

    model_config = ConfigDict(populate_by_name=True)
