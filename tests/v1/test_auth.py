# tests/v1/test_auth.py
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from roaster_api.core.security import hash_api_key
from roaster_api.db.time import as_utc
from roaster_api.models import ApiKey
from roaster_api.services.api_keys import ApiKeyIssuer
from roaster_api.services.entitlement import EntitlementSnapshot
from roaster_api.services.ledger import LedgerConfig


def _nonce(client: Any, address: str) -> str:
    r = client.post("/api/v1/auth/nonce", json={"address": address})
    assert r.status_code == 200, r.text
    return r.json()["message"]


def test_nonce_message_embeds_checksummed_address(client, wallet, test_settings):
    r = client.post("/api/v1/auth/nonce", json={"address": wallet.address.lower()})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["address"] == wallet.address

    lines = body["message"].split("\n")
    assert lines[0] == "TheRoaster API Key Claim"
    assert f"Address: {wallet.address}" in lines
    assert f"ChainId: {test_settings.chain_id}" in lines
    assert f"Contract: {test_settings.contract_address}" in lines


def test_nonce_rejects_bad_address(client):
    r = client.post("/api/v1/auth/nonce", json={"address": "0x1234"})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "Bad address" in r.json()["hint"]


def test_claim_issues_key(client, claim, wallet, ledger, db_session):
    snapshot = ledger.grant(wallet.address, tier=2)

    r = claim(wallet, requester="Clawd Bot")

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["api_key"].startswith("rk_")
    assert body["tier"] == 2
    assert body["expiresAt"] == snapshot.expires_at

    record = db_session.get(ApiKey, hash_api_key(body["api_key"], "test-salt"))
    assert record is not None
    assert record.wallet_address == wallet.address.lower()
    assert record.tier == "pro"
    assert record.agent_name == "ClawdBot"


def test_signature_cannot_be_replayed(client, wallet, ledger, sign):
    ledger.grant(wallet.address, tier=1)
    message = _nonce(client, wallet.address)
    payload = {"address": wallet.address, "signature": sign(wallet, message), "requester": "Bot1"}

    assert client.post("/api/v1/auth/claim", json=payload).status_code == 200
    replay = client.post("/api/v1/auth/claim", json=payload)

    assert replay.status_code == 400
    assert replay.json()["error"] == "Nonce expired. Request a new nonce."


def test_signature_mismatch_burns_nonce(client, wallet, other_wallet, ledger, sign):
    ledger.grant(wallet.address, tier=1)
    message = _nonce(client, wallet.address)

    forged = client.post(
        "/api/v1/auth/claim",
        json={"address": wallet.address, "signature": sign(other_wallet, message), "requester": "Bot1"},
    )
    assert forged.status_code == 401
    assert forged.json()["error"] == "Signature mismatch."

    genuine = client.post(
        "/api/v1/auth/claim",
        json={"address": wallet.address, "signature": sign(wallet, message), "requester": "Bot1"},
    )
    assert genuine.status_code == 400


def test_malformed_signature(client, wallet, ledger):
    ledger.grant(wallet.address, tier=1)
    _nonce(client, wallet.address)
    r = client.post(
        "/api/v1/auth/claim",
        json={"address": wallet.address, "signature": "0x1234", "requester": "Bot1"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Malformed signature."


def test_claim_requires_requester_and_signature(client, wallet):
    no_requester = client.post(
        "/api/v1/auth/claim",
        json={"address": wallet.address, "signature": "0xabc", "requester": "!!"},
    )
    assert no_requester.status_code == 400
    assert no_requester.json()["error"] == "Send requester (bot name)."

    no_signature = client.post(
        "/api/v1/auth/claim",
        json={"address": wallet.address, "signature": "  ", "requester": "Bot1"},
    )
    assert no_signature.status_code == 400
    assert no_signature.json()["error"] == "Missing signature."


def test_claim_without_entitlement(client, claim, wallet, db_session):
    r = claim(wallet)
    assert r.status_code == 402
    body = r.json()
    assert body["hint"] == "Buy a plan onchain then claim again."
    assert db_session.execute(select(ApiKey)).first() is None


def test_claim_with_lapsed_entitlement(client, claim, wallet, ledger):
    ledger.grant(wallet.address, tier=2, seconds=-60)
    assert claim(wallet).status_code == 402


def test_claim_with_unknown_tier_code(client, claim, wallet, ledger):
    ledger.grant(wallet.address, tier=9)
    r = claim(wallet)
    assert r.status_code == 400
    assert r.json()["error"] == "Unknown entitlement tier"


def test_reclaim_revokes_previous_key(client, claim, wallet, ledger, db_session):
    ledger.grant(wallet.address, tier=1)
    first = claim(wallet).json()["api_key"]
    second = claim(wallet).json()["api_key"]
    assert first != second

    old = client.post(
        "/api/v1/roast",
        json={"requester": "Bot1", "name": "x"},
        headers={"Authorization": f"Bearer {first}"},
    )
    assert old.status_code == 401

    new = client.post(
        "/api/v1/roast",
        json={"requester": "Bot1", "name": "x"},
        headers={"Authorization": f"Bearer {second}"},
    )
    assert new.status_code == 200

    rows = db_session.execute(
        select(ApiKey).where(ApiKey.wallet_address == wallet.address.lower())
    ).scalars().all()
    assert len(rows) == 2
    assert sum(1 for row in rows if row.is_usable()) == 1


def test_auth_routes_require_onchain_configuration(client, wallet, ledger):
    ledger.config = LedgerConfig(rpc_url=None, contract_address=None, timeout_seconds=1.0)
    r = client.post("/api/v1/auth/nonce", json={"address": wallet.address})
    assert r.status_code == 500
    assert r.json()["error"] == "Onchain not configured"


def test_claim_with_max_uint64_expiry(client, claim, wallet, ledger, db_session):
    never = 2**64 - 1
    ledger.entitlements[wallet.address.lower()] = EntitlementSnapshot(tier=2, expires_at=never)

    r = claim(wallet)

    assert r.status_code == 200, r.text
    assert r.json()["expiresAt"] == never
    raw_key = r.json()["api_key"]
    record = db_session.get(ApiKey, hash_api_key(raw_key, "test-salt"))
    assert as_utc(record.entitlement_expires_at).year == 9999

    roast = client.post(
        "/api/v1/roast",
        json={"requester": "Bot1", "name": "x"},
        headers={"Authorization": f"Bearer {raw_key}"},
    )
    assert roast.status_code == 200


def test_claim_when_database_unreachable(client, claim, wallet, ledger, mocker, db_session):
    ledger.grant(wallet.address, tier=1)
    mocker.patch.object(
        ApiKeyIssuer,
        "_lock_owner",
        side_effect=OperationalError("SELECT", {}, Exception("could not connect to server")),
    )

    r = claim(wallet)

    assert r.status_code == 502
    assert r.json()["success"] is False
    assert r.json()["error"] == "Store unavailable"
    assert db_session.execute(select(ApiKey)).first() is None
