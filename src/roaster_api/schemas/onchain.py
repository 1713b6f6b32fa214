"""Schemas for contract metadata, plans and unsigned transactions."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roaster_api.schemas.auth import _checksummed
from roaster_api.schemas.common import Envelope


class ContractResponse(Envelope):
    chain_id: int = Field(..., serialization_alias="chainId")
    domain: str
    contract: str
    usdc: str


class PlanOut(BaseModel):
    """A plan as listed by the contract."""

    tier: int
    duration_id: int = Field(..., serialization_alias="durationId")
    duration_seconds: int = Field(..., serialization_alias="durationSeconds")
    price_usdc: str = Field(
        ...,
        serialization_alias="priceUSDC",
        description="Price in USDC minor units (6 decimals)",
    )

    model_config = ConfigDict(from_attributes=True)


class PlansResponse(Envelope):
    plans: list[PlanOut]


class EntitlementResponse(Envelope):
    address: str
    tier: int = Field(..., description="Raw tier code as stored on-chain")
    expires_at: int = Field(..., serialization_alias="expiresAt")
    active: bool


class TxRequest(BaseModel):
    """Which plan to build a transaction for, and who will send it."""

    buyer: str = Field(..., description="Wallet that will sign and send")
    tier: int = Field(..., ge=0, le=255)
    duration_id: int = Field(..., alias="durationId", ge=0, le=255)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("buyer")
    @classmethod
    def validate_buyer(cls, v: str) -> str:
        return _checksummed(v)


class UnsignedTx(BaseModel):
    from_: str = Field(..., serialization_alias="from")
    to: str
    data: str
    value: str = "0x0"


class TxResponse(Envelope):
    tx: UnsignedTx
    price_usdc: str = Field(..., serialization_alias="priceUSDC")
