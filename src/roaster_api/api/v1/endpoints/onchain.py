# src/roaster_api/api/v1/endpoints/onchain.py
"""Read-only contract helpers and unsigned transaction builders."""

from __future__ import annotations

import time

from fastapi import APIRouter

from roaster_api.api.v1.dependencies import ContextDep
from roaster_api.core.security import normalize_address
from roaster_api.schemas.onchain import (
    ContractResponse,
    EntitlementResponse,
    PlanOut,
    PlansResponse,
    TxRequest,
    TxResponse,
    UnsignedTx,
)
from roaster_api.services.entitlement import effective_tier
from roaster_api.services.transactions import build_approve_tx, build_purchase_tx

router = APIRouter(tags=["onchain"])


@router.get("/contract", response_model=ContractResponse)
async def get_contract(context: ContextDep) -> ContractResponse:
    """Return the chain, domain and contract addresses clients need."""
    context.ledger.require_enabled()
    settings = context.settings
    return ContractResponse(
        chain_id=settings.chain_id,
        domain=settings.domain,
        contract=settings.contract_address or "",
        usdc=settings.usdc_address,
    )


@router.get("/plans", response_model=PlansResponse)
async def get_plans(context: ContextDep) -> PlansResponse:
    """List purchasable plans (cached for a short time)."""
    plans = await context.plans.get_plans()
    return PlansResponse(plans=[PlanOut.model_validate(plan) for plan in plans])


@router.get("/entitlement/{address}", response_model=EntitlementResponse)
async def get_entitlement(address: str, context: ContextDep) -> EntitlementResponse:
    """Return a wallet's raw entitlement and whether it is currently active."""
    context.ledger.require_enabled()
    checksummed = normalize_address(address)
    snapshot = await context.ledger.entitlement(checksummed)
    now = int(time.time())
    return EntitlementResponse(
        address=checksummed,
        tier=snapshot.tier,
        expires_at=snapshot.expires_at,
        active=effective_tier(snapshot.tier, snapshot.expires_at, now) != 0,
    )


@router.post("/tx/approve", response_model=TxResponse)
async def build_approve(payload: TxRequest, context: ContextDep) -> TxResponse:
    """Build an unsigned USDC approval for the plan price."""
    plan = await context.plans.find_plan(payload.tier, payload.duration_id)
    tx = build_approve_tx(
        payload.buyer,
        plan,
        usdc_address=context.settings.usdc_address,
        spender=context.settings.contract_address or "",
    )
    return TxResponse(tx=UnsignedTx(from_=tx["from"], to=tx["to"], data=tx["data"]), price_usdc=plan.price_usdc)


@router.post("/tx/purchase", response_model=TxResponse)
async def build_purchase(payload: TxRequest, context: ContextDep) -> TxResponse:
    """Build an unsigned plan purchase; the plan is validated first to avoid reverts."""
    plan = await context.plans.find_plan(payload.tier, payload.duration_id)
    tx = build_purchase_tx(
        payload.buyer,
        plan,
        contract_address=context.settings.contract_address or "",
    )
    return TxResponse(tx=UnsignedTx(from_=tx["from"], to=tx["to"], data=tx["data"]), price_usdc=plan.price_usdc)
