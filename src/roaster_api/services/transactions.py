"""Unsigned transaction payloads for buying a plan.

Wallets (bots or humans) sign and send these themselves; the service only
encodes calldata.
"""
from __future__ import annotations

from roaster_api.services.ledger import (
    APPROVE_SIGNATURE,
    PURCHASE_SIGNATURE,
    Plan,
    encode_call,
)


def build_approve_tx(buyer: str, plan: Plan, *, usdc_address: str, spender: str) -> dict[str, str]:
    """USDC ``approve(spender, price)`` so the contract can pull the plan price."""
    return {
        "from": buyer,
        "to": usdc_address,
        "data": encode_call(
            APPROVE_SIGNATURE,
            ["address", "uint256"],
            [spender, int(plan.price_usdc)],
        ),
        "value": "0x0",
    }


def build_purchase_tx(buyer: str, plan: Plan, *, contract_address: str) -> dict[str, str]:
    """``purchase(tier, durationId)`` on the plan contract."""
    return {
        "from": buyer,
        "to": contract_address,
        "data": encode_call(
            PURCHASE_SIGNATURE,
            ["uint8", "uint8"],
            [plan.tier, plan.duration_id],
        ),
        "value": "0x0",
    }
