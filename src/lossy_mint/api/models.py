"""Pydantic models for request payloads."""

from pydantic import BaseModel, ConfigDict, Field


class CheckoutMetadata(BaseModel):
    """Description of the uploaded piece."""

    model_config = ConfigDict(populate_by_name=True)

    file_uri: str = Field(alias="fileUri", min_length=1)
    mode: str | None = None
    speed: float | None = None
    answers: dict[str, object] = Field(default_factory=dict)


class CheckoutRequest(BaseModel):
    """Checkout payload."""

    model_config = ConfigDict(populate_by_name=True)

    output_type: str | None = Field(default=None, alias="outputType")
    buyer_wallet: str | None = Field(default=None, alias="buyerWallet")
    metadata: CheckoutMetadata


class SweepRequest(BaseModel):
    """Sweep retry payload."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
