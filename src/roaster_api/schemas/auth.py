"""Schemas for the wallet sign-in and API key claim flow."""

from pydantic import BaseModel, Field, field_validator

from roaster_api.core.errors import InvalidAddress
from roaster_api.core.security import normalize_address
from roaster_api.schemas.common import Envelope


def _checksummed(value: str) -> str:
    try:
        return normalize_address(value)
    except InvalidAddress as err:
        raise ValueError("Bad address") from err


class NonceRequest(BaseModel):
    """Request a claim message for a wallet."""

    address: str = Field(..., description="Wallet address (hex, any case)")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return _checksummed(v)


class NonceResponse(Envelope):
    """Message the wallet must sign with ``personal_sign``."""

    address: str = Field(..., description="Checksummed wallet address")
    message: str = Field(..., description="Exact text to sign")


class ClaimRequest(BaseModel):
    """Signed claim for a fresh API key."""

    address: str = Field(..., description="Wallet address that signed the message")
    signature: str = Field(..., description="Hex-encoded 65-byte signature")
    requester: str = Field(..., description="Calling bot name, stored as the key label")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return _checksummed(v)


class ClaimResponse(Envelope):
    """Claim result. ``api_key`` is shown once and cannot be fetched again."""

    api_key: str = Field(..., description="Raw API key")
    tier: int = Field(..., description="Effective on-chain tier code")
    expires_at: int = Field(
        ...,
        serialization_alias="expiresAt",
        description="Entitlement expiry (unix seconds)",
    )
