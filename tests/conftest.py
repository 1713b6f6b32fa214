# tests/conftest.py
from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from typing import Any

import fakeredis
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from roaster_api.core.context import ServiceContext
from roaster_api.core.errors import GenerationError
from roaster_api.core.settings import Settings
from roaster_api.db.session import build_engine, build_session_factory, create_tables, drop_tables
from roaster_api.main import create_app
from roaster_api.services.entitlement import EntitlementSnapshot
from roaster_api.services.generation import RoastGenerator, RoastRequest
from roaster_api.services.ledger import LedgerClient, LedgerConfig, Plan

TEST_SALT = "test-salt"
CONTRACT_ADDRESS = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
RPC_URL = "http://ledger.test/rpc"

DEFAULT_PLANS = [
    Plan(tier=1, duration_id=0, duration_seconds=2_592_000, price_usdc="5000000"),
    Plan(tier=2, duration_id=0, duration_seconds=2_592_000, price_usdc="15000000"),
]


class StubLedger(LedgerClient):
    """Ledger client answering from in-memory entitlements and plans."""

    def __init__(self, *, enabled: bool = True) -> None:
        super().__init__(
            LedgerConfig(
                rpc_url=RPC_URL if enabled else None,
                contract_address=CONTRACT_ADDRESS if enabled else None,
                timeout_seconds=1.0,
            )
        )
        self.entitlements: dict[str, EntitlementSnapshot] = {}
        self.plans: list[Plan] = list(DEFAULT_PLANS)
        self.plan_calls = 0

    def grant(self, address: str, tier: int, seconds: int = 3600) -> EntitlementSnapshot:
        snapshot = EntitlementSnapshot(tier=tier, expires_at=int(time.time()) + seconds)
        self.entitlements[address.lower()] = snapshot
        return snapshot

    async def entitlement(self, address: str) -> EntitlementSnapshot:
        self.require_enabled()
        return self.entitlements.get(address.lower(), EntitlementSnapshot(tier=0, expires_at=0))

    async def list_plans(self) -> list[Plan]:
        self.require_enabled()
        self.plan_calls += 1
        return list(self.plans)


class StubGenerator(RoastGenerator):
    """Generator that records requests instead of calling OpenAI."""

    def __init__(self, *, enabled: bool = True, fail: bool = False) -> None:
        super().__init__(None, model="test-model", timeout_seconds=1.0)
        self._enabled = enabled
        self.fail = fail
        self.requests: list[RoastRequest] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def generate(self, request: RoastRequest) -> str:
        self.requests.append(request)
        if self.fail:
            raise GenerationError()
        return f"{request.name or 'You'} types like a toaster with a grudge."


def sign_message(account: LocalAccount, message: str) -> str:
    """Return a 0x-prefixed personal_sign signature."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        api_key_salt=TEST_SALT,
        contract_address=CONTRACT_ADDRESS,
        rpc_url=RPC_URL,
        openai_api_key="sk-test",
        free_daily_limit=5,
        free_ip_daily_limit=20,
        basic_daily_limit=50,
        pro_daily_limit=250,
    )


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine("sqlite://")
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def ledger() -> StubLedger:
    return StubLedger()


@pytest.fixture()
def generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture()
def context(
    test_settings: Settings,
    engine: Engine,
    fake_redis: fakeredis.FakeRedis,
    ledger: StubLedger,
    generator: StubGenerator,
) -> ServiceContext:
    return ServiceContext(
        settings=test_settings,
        engine=engine,
        redis=fake_redis,
        ledger=ledger,
        generator=generator,
    )


@pytest.fixture()
def app(context: ServiceContext) -> FastAPI:
    return create_app(context)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def wallet() -> LocalAccount:
    return Account.create()


@pytest.fixture()
def other_wallet() -> LocalAccount:
    return Account.create()


@pytest.fixture()
def sign() -> Callable[[LocalAccount, str], str]:
    return sign_message


@pytest.fixture()
def claim(client: TestClient) -> Callable[..., Any]:
    """Run the nonce + claim flow and return the claim response."""

    def _claim(account: LocalAccount, requester: str = "Bot1") -> Any:
        nonce = client.post("/api/v1/auth/nonce", json={"address": account.address})
        assert nonce.status_code == 200, nonce.text
        message = nonce.json()["message"]
        return client.post(
            "/api/v1/auth/claim",
            json={
                "address": account.address,
                "signature": sign_message(account, message),
                "requester": requester,
            },
        )

    return _claim
