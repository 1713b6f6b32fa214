"""API key issuance and validation.

Keys are returned to the caller exactly once and stored only as a salted
SHA-256 hash. A wallet has at most one usable key: every claim revokes the
previous usable key and inserts the new one inside one transaction that holds
the wallet's ``api_key_owner`` row lock.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from roaster_api.core.errors import CredentialUnusable, InputValidation, StoreUnavailable
from roaster_api.core.security import generate_api_key, hash_api_key
from roaster_api.db.time import utcnow
from roaster_api.models import ApiKey, ApiKeyOwner

logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


class TaskScheduler(Protocol):
    """Anything with FastAPI's ``BackgroundTasks.add_task`` signature."""

    def add_task(self, func, *args, **kwargs) -> None: ...  # type: ignore[no-untyped-def]


@dataclass(frozen=True)
class IssuedKey:
    """Result of a successful claim. ``raw_key`` exists only in this object."""

    raw_key: str = field(repr=False)
    key_hash: str
    wallet_address: str
    tier: str
    entitlement_expires_at: datetime | None
    revoked_count: int


class ApiKeyIssuer:
    """Mint API keys while keeping one usable key per wallet."""

    def __init__(self, salt: str) -> None:
        if not salt:
            raise ValueError("API key salt must not be empty")
        self._salt = salt

    @staticmethod
    def _lock_owner(db: Session, wallet: str, now: datetime) -> ApiKeyOwner:
        """Create the wallet's owner row if needed and take its row lock."""
        dialect = db.get_bind().dialect.name
        values = {"wallet_address": wallet, "created_at": now}
        if dialect == "postgresql":
            db.execute(pg_insert(ApiKeyOwner).values(**values).on_conflict_do_nothing())
        elif dialect == "sqlite":
            db.execute(sqlite_insert(ApiKeyOwner).values(**values).on_conflict_do_nothing())
        elif db.get(ApiKeyOwner, wallet) is None:
            db.add(ApiKeyOwner(**values))
            db.flush()

        return db.execute(
            select(ApiKeyOwner)
            .where(ApiKeyOwner.wallet_address == wallet)
            .with_for_update()
        ).scalar_one()

    def mint(
        self,
        db: Session,
        *,
        wallet_address: str,
        tier: str,
        entitlement_expires_at: datetime | None,
        label: str | None = None,
        daily_limit: int | None = None,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> IssuedKey:
        """Revoke the wallet's usable keys and insert a fresh one atomically.

        The transaction is committed here. On any failure it is rolled back
        and the error propagates; nothing is retried, the caller must restart
        the claim with a new nonce.

        Raises:
            StoreUnavailable: If the database cannot be reached.
        """
        wallet = wallet_address.lower()
        if not wallet:
            raise InputValidation("wallet required")
        if not tier:
            raise InputValidation("tier required")

        raw_key = generate_api_key()
        key_hash = hash_api_key(raw_key, self._salt)
        now = now or utcnow()

        try:
            owner = self._lock_owner(db, wallet, now)
            result = db.execute(
                update(ApiKey)
                .where(ApiKey.wallet_address == wallet, ApiKey.usable_clause(now))
                .values(enabled=False, revoked_at=now)
                .execution_options(synchronize_session="fetch")
            )
            db.add(
                ApiKey(
                    key_hash=key_hash,
                    wallet_address=wallet,
                    tier=tier,
                    daily_limit=daily_limit,
                    enabled=True,
                    expires_at=expires_at,
                    entitlement_expires_at=entitlement_expires_at,
                    agent_name=label,
                    created_at=now,
                )
            )
            owner.last_claim_at = now
            db.commit()
        except OperationalError as exc:
            db.rollback()
            logger.error("Key issuance for %s failed, store unreachable: %s", wallet, exc)
            raise StoreUnavailable() from exc
        except Exception:
            db.rollback()
            raise

        revoked_count = int(result.rowcount or 0)
        logger.info(
            "Issued %s key for %s (revoked %d previous)", tier, wallet, revoked_count
        )
        return IssuedKey(
            raw_key=raw_key,
            key_hash=key_hash,
            wallet_address=wallet,
            tier=tier,
            entitlement_expires_at=entitlement_expires_at,
            revoked_count=revoked_count,
        )

    def revoke(self, db: Session, key_hash: str, *, now: datetime | None = None) -> bool:
        """Administratively revoke a key by hash. Returns False if already revoked."""
        try:
            result = db.execute(
                update(ApiKey)
                .where(ApiKey.key_hash == key_hash, ApiKey.revoked_at.is_(None))
                .values(enabled=False, revoked_at=now or utcnow())
                .execution_options(synchronize_session="fetch")
            )
            db.commit()
        except OperationalError as exc:
            db.rollback()
            raise StoreUnavailable() from exc
        except Exception:
            db.rollback()
            raise
        revoked = bool(result.rowcount)
        if revoked:
            logger.info("Revoked key %s", key_hash[:12])
        return revoked

    def hash(self, raw_key: str) -> str:
        return hash_api_key(raw_key, self._salt)


class ApiKeyValidator:
    """Resolve presented API keys to usable records."""

    def __init__(
        self,
        salt: str,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self._salt = salt
        self._session_factory = session_factory

    def resolve(
        self,
        db: Session,
        raw_key: str,
        *,
        tasks: TaskScheduler | None = None,
        now: datetime | None = None,
    ) -> ApiKey:
        """Return the usable key record matching `raw_key`.

        On a hit a ``last_used_at`` update is scheduled on `tasks`; it runs
        after the response and its failure is only logged. Tasks queued on a
        request that later fails are dropped, so callers touch the key
        themselves on their error path.

        Raises:
            CredentialUnusable: If no usable key matches.
            StoreUnavailable: If the database cannot be reached.
        """
        raw_key = (raw_key or "").strip()
        if not raw_key:
            raise CredentialUnusable()

        key_hash = hash_api_key(raw_key, self._salt)
        try:
            record = db.execute(
                select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.usable_clause(now or utcnow()))
            ).scalar_one_or_none()
        except OperationalError as exc:
            logger.error("Key lookup failed, store unreachable: %s", exc)
            raise StoreUnavailable() from exc
        if record is None:
            raise CredentialUnusable()

        if tasks is not None:
            tasks.add_task(self.touch_last_used, key_hash)
        return record

    def touch_last_used(self, key_hash: str) -> None:
        """Best-effort ``last_used_at`` update in its own session."""
        if self._session_factory is None:
            return
        db = self._session_factory()
        try:
            db.execute(
                update(ApiKey)
                .where(ApiKey.key_hash == key_hash)
                .values(last_used_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to record key usage for %s: %s", key_hash[:12], exc)
        finally:
            db.close()


def parse_bearer(authorization: str | None) -> str | None:
    """Extract a bearer token from an ``Authorization`` header.

    Returns None only when no credential was presented at all. A header that
    is present but not a usable bearer token is an authentication failure,
    never anonymous access.

    Raises:
        CredentialUnusable: For a present but malformed header.
    """
    if authorization is None or not authorization.strip():
        return None
    match = _BEARER_RE.match(authorization.strip())
    if match is None or not match.group(1).strip():
        raise CredentialUnusable()
    return match.group(1).strip()
