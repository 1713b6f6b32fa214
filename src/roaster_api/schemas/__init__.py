"""Pydantic schemas for request validation and response envelopes."""

from .auth import ClaimRequest, ClaimResponse, NonceRequest, NonceResponse
from .common import Envelope, ErrorResponse
from .onchain import (
    ContractResponse,
    EntitlementResponse,
    PlanOut,
    PlansResponse,
    TxRequest,
    TxResponse,
    UnsignedTx,
)
from .roast import RoastBody, RoastResponse

__all__ = [
    "ClaimRequest", "ClaimResponse", "NonceRequest", "NonceResponse",
    "Envelope", "ErrorResponse",
    "ContractResponse", "EntitlementResponse", "PlanOut", "PlansResponse",
    "TxRequest", "TxResponse", "UnsignedTx",
    "RoastBody", "RoastResponse",
]
