"""Interpretation of on-chain entitlement snapshots."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Final

from roaster_api.core.errors import NoActiveEntitlement, UnknownTier

TIER_NONE: Final[int] = 0
TIER_BASIC: Final[int] = 1
TIER_PRO: Final[int] = 2

TIER_NAMES: Final[dict[int, str]] = {
    TIER_BASIC: "basic",
    TIER_PRO: "pro",
}


@dataclass(frozen=True)
class EntitlementSnapshot:
    """Tier code and absolute expiry (unix seconds) read from the ledger."""

    tier: int
    expires_at: int

    def is_active(self, now: int | None = None) -> bool:
        return effective_tier(self.tier, self.expires_at, now) != TIER_NONE


def effective_tier(tier_code: int, expires_at: int, now: int | None = None) -> int:
    """Return `tier_code` while the entitlement is live, otherwise 0."""
    now = int(time.time()) if now is None else now
    if expires_at <= now:
        return TIER_NONE
    return tier_code


def require_active_entitlement(snapshot: EntitlementSnapshot, now: int | None = None) -> int:
    """Return the effective tier, refusing expired or empty entitlements.

    Raises:
        NoActiveEntitlement: If the effective tier is 0.
    """
    tier = effective_tier(snapshot.tier, snapshot.expires_at, now)
    if tier == TIER_NONE:
        raise NoActiveEntitlement()
    return tier


def tier_name(tier_code: int) -> str:
    """Map a ledger tier code to its caller-visible name.

    Raises:
        UnknownTier: For codes the service has no limits for.
    """
    try:
        return TIER_NAMES[tier_code]
    except KeyError as err:
        raise UnknownTier(hint=f"Tier code {tier_code} is not supported") from err
