# src/roaster_api/api/v1/endpoints/auth.py
"""Wallet sign-in endpoints: challenge issuance and API key claims."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from roaster_api.api.v1.dependencies import ContextDep, SessionDep
from roaster_api.core.errors import InputValidation, RoasterError
from roaster_api.core.security import verify_wallet_signature
from roaster_api.db.time import from_unix
from roaster_api.schemas.auth import ClaimRequest, ClaimResponse, NonceRequest, NonceResponse
from roaster_api.services.entitlement import require_active_entitlement, tier_name
from roaster_api.services.quota import clean_requester

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/nonce",
    summary="Issue a claim message for a wallet to sign",
    response_model=NonceResponse,
)
async def issue_nonce(payload: NonceRequest, context: ContextDep) -> NonceResponse:
    """Store a single-use challenge for the wallet and return its message."""
    context.ledger.require_enabled()
    message = context.nonces.issue_challenge(payload.address)
    return NonceResponse(address=payload.address, message=message)


@router.post(
    "/claim",
    summary="Claim an API key backed by an on-chain entitlement",
    response_model=ClaimResponse,
)
async def claim_api_key(
    payload: ClaimRequest,
    context: ContextDep,
    db: SessionDep,
) -> ClaimResponse:
    """Verify the signed challenge and issue a fresh key.

    The pending challenge is consumed before the signature is checked, so a
    failed attempt burns it too. Nothing here is retried; on failure the
    caller requests a new nonce and signs again.
    """
    context.ledger.require_enabled()

    requester = clean_requester(payload.requester)
    if not requester:
        raise InputValidation("Send requester (bot name).")
    signature = payload.signature.strip()
    if not signature:
        raise InputValidation("Missing signature.")

    address = payload.address
    try:
        message = context.nonces.consume_challenge(address)
        verify_wallet_signature(message, signature, address)

        snapshot = await context.ledger.entitlement(address)
        tier_code = require_active_entitlement(snapshot)
        issued = context.issuer.mint(
            db,
            wallet_address=address,
            tier=tier_name(tier_code),
            entitlement_expires_at=from_unix(snapshot.expires_at),
            label=requester,
        )
    except RoasterError as exc:
        logger.info("Claim rejected for %s: %s", address, exc.error)
        raise

    return ClaimResponse(api_key=issued.raw_key, tier=tier_code, expires_at=snapshot.expires_at)
