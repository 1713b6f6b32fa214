# tests/test_scripts.py
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from roaster_api.core.security import hash_api_key
from roaster_api.core.settings import Settings
from roaster_api.db.session import build_engine, build_session_factory, create_tables
from roaster_api.db.time import as_utc, utcnow
from roaster_api.models import ApiKey
from roaster_api.scripts.ensure_db import normalize_to_psycopg, split_db_url
from roaster_api.scripts.keys import (
    EXIT_BAD_INPUT,
    EXIT_NO_SALT,
    EXIT_NOT_FOUND,
    EXIT_OK,
    parse_expiry,
    resolve_key_hash,
    run,
)
from roaster_api.services.api_keys import ApiKeyIssuer

WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"


@pytest.fixture
def file_settings(tmp_path):
    return Settings(database_url=f"sqlite:///{tmp_path / 'keys.db'}", api_key_salt="test-salt")


@pytest.fixture
def issued(file_settings):
    engine = build_engine(file_settings.database_url)
    create_tables(engine)
    db = build_session_factory(engine)()
    try:
        yield ApiKeyIssuer("test-salt").mint(
            db,
            wallet_address=WALLET,
            tier="pro",
            entitlement_expires_at=utcnow() + timedelta(days=1),
            label="Bot1",
        )
    finally:
        db.close()
        engine.dispose()


def test_resolve_key_hash_accepts_hash_or_raw_key():
    digest = hash_api_key("rk_abc", "s")
    assert resolve_key_hash(digest, "s") == digest
    assert resolve_key_hash("rk_abc", "s") == digest


def test_hash_command(file_settings, capsys):
    assert run(["hash", "rk_abc"], file_settings) == EXIT_OK
    assert capsys.readouterr().out.strip() == hash_api_key("rk_abc", "test-salt")


def test_hash_command_requires_salt(capsys):
    assert run(["hash", "rk_abc"], Settings(api_key_salt="")) == EXIT_NO_SALT
    assert "API_KEY_SALT" in capsys.readouterr().err


def test_show_and_revoke(file_settings, issued, capsys):
    assert run(["show", WALLET], file_settings) == EXIT_OK
    out = capsys.readouterr().out
    assert issued.key_hash[:12] in out
    assert "active" in out
    assert "label=Bot1" in out

    assert run(["revoke", issued.raw_key], file_settings) == EXIT_OK
    assert run(["revoke", issued.key_hash], file_settings) == EXIT_NOT_FOUND

    capsys.readouterr()
    assert run(["show", WALLET.lower()], file_settings) == EXIT_OK
    assert "revoked" in capsys.readouterr().out


def test_show_unknown_wallet(file_settings, issued):
    assert run(["show", "0x0000000000000000000000000000000000000001"], file_settings) == EXIT_NOT_FOUND


def _wallet_rows(config):
    engine = build_engine(config.database_url)
    db = build_session_factory(engine)()
    try:
        return db.execute(
            select(ApiKey).where(ApiKey.wallet_address == WALLET.lower()).order_by(ApiKey.created_at)
        ).scalars().all()
    finally:
        db.close()
        engine.dispose()


def test_issue_prints_raw_key_once(file_settings, capsys):
    engine = build_engine(file_settings.database_url)
    create_tables(engine)
    engine.dispose()

    code = run(
        [
            "issue",
            WALLET.lower(),
            "--tier",
            "pro",
            "--daily-limit",
            "1000",
            "--expires-at",
            "2030-01-01T00:00:00",
            "--label",
            "partner",
        ],
        file_settings,
    )

    assert code == EXIT_OK
    captured = capsys.readouterr()
    raw_key = captured.out.strip()
    assert raw_key.startswith("rk_")
    assert raw_key not in captured.err

    [row] = _wallet_rows(file_settings)
    assert row.key_hash == hash_api_key(raw_key, "test-salt")
    assert row.tier == "pro"
    assert row.daily_limit == 1000
    assert row.agent_name == "partner"
    assert as_utc(row.expires_at) == datetime(2030, 1, 1, tzinfo=UTC)
    assert row.entitlement_expires_at is None
    assert row.is_usable()


def test_issue_revokes_previous_key(file_settings, issued, capsys):
    assert run(["issue", WALLET, "--tier", "basic"], file_settings) == EXIT_OK
    raw_key = capsys.readouterr().out.strip()

    rows = _wallet_rows(file_settings)
    assert len(rows) == 2
    usable = [row for row in rows if row.is_usable()]
    assert [row.key_hash for row in usable] == [hash_api_key(raw_key, "test-salt")]


def test_issue_rejects_bad_wallet(file_settings, capsys):
    assert run(["issue", "0x1234", "--tier", "pro"], file_settings) == EXIT_BAD_INPUT
    assert "Not a wallet address" in capsys.readouterr().err


def test_issue_rejects_unknown_tier(file_settings):
    with pytest.raises(SystemExit):
        run(["issue", WALLET, "--tier", "gold"], file_settings)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1893456000", datetime(2030, 1, 1, tzinfo=UTC)),
        ("2030-01-01T00:00:00", datetime(2030, 1, 1, tzinfo=UTC)),
        ("2030-01-01T00:00:00Z", datetime(2030, 1, 1, tzinfo=UTC)),
        ("2030-01-01T02:00:00+02:00", datetime(2030, 1, 1, tzinfo=UTC)),
    ],
)
def test_parse_expiry(value, expected):
    assert parse_expiry(value) == expected


def test_normalize_to_psycopg():
    assert (
        normalize_to_psycopg(" 'postgresql+psycopg://u:p@db:5432/roaster' ")
        == "postgresql://u:p@db:5432/roaster"
    )
    with pytest.raises(ValueError):
        normalize_to_psycopg("sqlite:///./roaster.db")
    with pytest.raises(ValueError):
        normalize_to_psycopg("")


def test_split_db_url():
    admin_url, target = split_db_url("postgresql+psycopg://u:p@db:5432/roaster?sslmode=disable")
    assert admin_url == "postgresql://u:p@db:5432/postgres?sslmode=disable"
    assert target == "roaster"
