"""Read-only client for the Roaster plan contract.

This module talks JSON-RPC (``eth_call``) to a Base RPC endpoint through
httpx and decodes results with eth-abi. It never signs or submits
transactions. All failures surface as :class:`LedgerError`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from roaster_api.core.errors import LedgerError, Misconfiguration
from roaster_api.core.settings import Settings
from roaster_api.services.entitlement import EntitlementSnapshot

# Configure logger for this module
logger = logging.getLogger(__name__)

ENTITLEMENT_SIGNATURE = "entitlement(address)"
GET_ALL_PLANS_SIGNATURE = "getAllPlans()"
PURCHASE_SIGNATURE = "purchase(uint8,uint8)"
APPROVE_SIGNATURE = "approve(address,uint256)"

PLAN_TUPLE_TYPE = "(uint8,uint8,uint32,uint256)[]"


def encode_call(signature: str, types: Sequence[str] = (), args: Sequence[Any] = ()) -> str:
    """Return ``0x``-prefixed calldata for a function signature and arguments."""
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(list(types), list(args))).hex()


@dataclass(frozen=True)
class Plan:
    """A purchasable plan as listed by the contract."""

    tier: int
    duration_id: int
    duration_seconds: int
    price_usdc: str  # 6 decimals, kept as a decimal string

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "durationId": self.duration_id,
            "durationSeconds": self.duration_seconds,
            "priceUSDC": self.price_usdc,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Plan:
        return cls(
            tier=int(payload["tier"]),
            duration_id=int(payload["durationId"]),
            duration_seconds=int(payload["durationSeconds"]),
            price_usdc=str(payload["priceUSDC"]),
        )


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable configuration for ledger reads."""

    rpc_url: str | None
    contract_address: str | None
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.rpc_url and self.contract_address)


def load_ledger_config(settings: Settings) -> LedgerConfig:
    """Build configuration object from settings."""
    return LedgerConfig(
        rpc_url=settings.rpc_url,
        contract_address=settings.contract_address,
        timeout_seconds=float(settings.ledger_http_timeout_seconds),
    )


class LedgerClient:
    """HTTP JSON-RPC wrapper for the plan contract."""

    def __init__(
        self,
        config: LedgerConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def require_enabled(self) -> None:
        """Raise when the RPC endpoint or the contract address is not set."""
        if not self.enabled:
            raise Misconfiguration("Onchain not configured")

    async def _ensure_client(self) -> httpx.AsyncClient:
        self.require_enabled()
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _eth_call(self, data: str) -> bytes:
        client = await self._ensure_client()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": self.config.contract_address, "data": data}, "latest"],
        }
        try:
            response = await client.post(self.config.rpc_url or "", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            logger.error("Ledger request failed: %s", exc)
            raise LedgerError() from exc
        except ValueError as exc:
            logger.error("Ledger returned a non-JSON body")
            raise LedgerError() from exc

        if body.get("error"):
            logger.error("Ledger call reverted: %s", body["error"])
            raise LedgerError()
        result = body.get("result")
        if not isinstance(result, str) or not result.startswith("0x"):
            raise LedgerError()
        return bytes.fromhex(result[2:])

    async def entitlement(self, address: str) -> EntitlementSnapshot:
        """Return the wallet's (tier, expiresAt) entitlement."""
        data = encode_call(ENTITLEMENT_SIGNATURE, ["address"], [to_checksum_address(address)])
        raw = await self._eth_call(data)
        try:
            tier, expires_at = decode(["uint8", "uint64"], raw)
        except Exception as exc:
            raise LedgerError() from exc
        return EntitlementSnapshot(tier=int(tier), expires_at=int(expires_at))

    async def list_plans(self) -> list[Plan]:
        """Return every plan the contract currently sells."""
        raw = await self._eth_call(encode_call(GET_ALL_PLANS_SIGNATURE))
        try:
            (plans,) = decode([PLAN_TUPLE_TYPE], raw)
        except Exception as exc:
            raise LedgerError() from exc
        return [
            Plan(
                tier=int(tier),
                duration_id=int(duration_id),
                duration_seconds=int(duration_seconds),
                price_usdc=str(price),
            )
            for tier, duration_id, duration_seconds, price in plans
        ]

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
