import pytest

from roaster_api.core.errors import NoActiveEntitlement, UnknownTier
from roaster_api.services.entitlement import (
    TIER_BASIC,
    TIER_NONE,
    TIER_PRO,
    EntitlementSnapshot,
    effective_tier,
    require_active_entitlement,
    tier_name,
)

NOW = 1_800_000_000


@pytest.mark.parametrize(
    ("tier", "expires_at", "expected"),
    [
        (TIER_BASIC, NOW + 1, TIER_BASIC),
        (TIER_PRO, NOW + 3600, TIER_PRO),
        (TIER_PRO, NOW, TIER_NONE),
        (TIER_BASIC, NOW - 1, TIER_NONE),
        (TIER_NONE, NOW + 3600, TIER_NONE),
    ],
)
def test_effective_tier(tier, expires_at, expected):
    assert effective_tier(tier, expires_at, NOW) == expected


def test_require_active_entitlement_returns_tier():
    snapshot = EntitlementSnapshot(tier=TIER_PRO, expires_at=NOW + 10)
    assert snapshot.is_active(NOW)
    assert require_active_entitlement(snapshot, NOW) == TIER_PRO


@pytest.mark.parametrize(
    "snapshot",
    [
        EntitlementSnapshot(tier=TIER_PRO, expires_at=NOW - 10),
        EntitlementSnapshot(tier=TIER_NONE, expires_at=NOW + 10),
        EntitlementSnapshot(tier=TIER_NONE, expires_at=0),
    ],
)
def test_require_active_entitlement_rejects_inactive(snapshot):
    with pytest.raises(NoActiveEntitlement) as exc_info:
        require_active_entitlement(snapshot, NOW)
    assert exc_info.value.status_code == 402
    assert exc_info.value.hint == "Buy a plan onchain then claim again."


def test_tier_names():
    assert tier_name(TIER_BASIC) == "basic"
    assert tier_name(TIER_PRO) == "pro"
    with pytest.raises(UnknownTier):
        tier_name(7)
