"""Operator commands for API keys.

    python -m roaster_api.scripts.keys hash <raw-key>
    python -m roaster_api.scripts.keys revoke <raw-key-or-hash>
    python -m roaster_api.scripts.keys show <wallet>
    python -m roaster_api.scripts.keys issue <wallet> --tier pro [--daily-limit N]
        [--expires-at 2026-12-31T00:00:00Z] [--label name]

Raw keys are never stored, so support requests arrive with either the raw
key (which we hash with the server salt) or a hash copied from logs.
``issue`` mints a key outside the wallet-signature flow, for partners and
support; the raw key is printed once and cannot be recovered later.
"""

from __future__ import annotations

import argparse
import re
import sys
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from roaster_api.core.errors import InvalidAddress
from roaster_api.core.security import hash_api_key, normalize_address
from roaster_api.core.settings import Settings, settings
from roaster_api.db.session import build_engine, build_session_factory
from roaster_api.db.time import from_unix
from roaster_api.models import ApiKey
from roaster_api.services.api_keys import ApiKeyIssuer
from roaster_api.services.entitlement import TIER_NAMES

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_NO_SALT = 2
EXIT_BAD_INPUT = 3


def resolve_key_hash(value: str, salt: str) -> str:
    """Accept either a raw key or an already computed hash."""
    value = value.strip()
    if _HASH_RE.match(value):
        return value
    return hash_api_key(value, salt)


def describe_wallet_keys(db: Session, wallet: str) -> list[str]:
    """One line per key ever issued to `wallet`, newest first."""
    rows = db.execute(
        select(ApiKey)
        .where(ApiKey.wallet_address == wallet.strip().lower())
        .order_by(ApiKey.created_at.desc())
    ).scalars()
    return [
        f"{row.key_hash[:12]}  {row.tier:<6} {row.state:<8} "
        f"label={row.agent_name or '-'} last_used={row.last_used_at or '-'}"
        for row in rows
    ]


def parse_expiry(value: str) -> datetime:
    """Parse unix seconds or an ISO-8601 timestamp; naive values are UTC."""
    value = value.strip()
    if value.isdigit():
        return from_unix(int(value))  # type: ignore[return-value]
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid expiry: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def run(argv: Sequence[str] | None = None, config: Settings | None = None) -> int:
    config = config or settings
    parser = argparse.ArgumentParser(description="Manage Roaster API keys")
    sub = parser.add_subparsers(dest="command", required=True)
    hash_cmd = sub.add_parser("hash", help="Print the salted hash of a raw key")
    hash_cmd.add_argument("raw_key")
    revoke_cmd = sub.add_parser("revoke", help="Revoke a key (raw key or hash)")
    revoke_cmd.add_argument("key")
    show_cmd = sub.add_parser("show", help="List every key issued to a wallet")
    show_cmd.add_argument("wallet")
    issue_cmd = sub.add_parser("issue", help="Mint a key for a wallet without a signed claim")
    issue_cmd.add_argument("wallet")
    issue_cmd.add_argument("--tier", required=True, choices=sorted(TIER_NAMES.values()))
    issue_cmd.add_argument("--daily-limit", type=positive_int, default=None)
    issue_cmd.add_argument("--expires-at", type=parse_expiry, default=None)
    issue_cmd.add_argument("--label", default=None)
    args = parser.parse_args(argv)

    salt = config.api_key_salt
    if not salt:
        print("API_KEY_SALT is not set", file=sys.stderr)
        return EXIT_NO_SALT

    if args.command == "hash":
        print(hash_api_key(args.raw_key, salt))
        return EXIT_OK

    if args.command == "issue":
        try:
            wallet = normalize_address(args.wallet)
        except InvalidAddress:
            print(f"Not a wallet address: {args.wallet}", file=sys.stderr)
            return EXIT_BAD_INPUT

    engine = build_engine(config.effective_database_url)
    db = build_session_factory(engine)()
    try:
        if args.command == "issue":
            issued = ApiKeyIssuer(salt).mint(
                db,
                wallet_address=wallet,
                tier=args.tier,
                entitlement_expires_at=None,
                label=args.label,
                daily_limit=args.daily_limit,
                expires_at=args.expires_at,
            )
            print(issued.raw_key)
            print(
                f"Issued {issued.tier} key {issued.key_hash[:12]} for {issued.wallet_address}"
                f" (revoked {issued.revoked_count} previous)",
                file=sys.stderr,
            )
            return EXIT_OK

        if args.command == "revoke":
            key_hash = resolve_key_hash(args.key, salt)
            if ApiKeyIssuer(salt).revoke(db, key_hash):
                print(f"Revoked {key_hash}")
                return EXIT_OK
            print(f"No active key with hash {key_hash}", file=sys.stderr)
            return EXIT_NOT_FOUND

        lines = describe_wallet_keys(db, args.wallet)
        if not lines:
            print("No keys issued to this wallet", file=sys.stderr)
            return EXIT_NOT_FOUND
        print("\n".join(lines))
        return EXIT_OK
    finally:
        db.close()
        engine.dispose()


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
