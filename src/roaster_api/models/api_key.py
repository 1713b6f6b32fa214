# src/roaster_api/models/api_key.py
"""SQLAlchemy models for issued API keys and their owning wallets."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, Text, and_, or_
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement

from roaster_api.db.session import Base
from roaster_api.db.time import as_utc, utcnow


class ApiKey(Base):
    """Issued API key, stored only as a salted hash.

    Rows are never deleted. Revocation flips ``enabled`` and stamps
    ``revoked_at``; expiry is computed at read time from the two expiry
    columns and is never written back.
    """

    __tablename__ = "api_keys"

    key_hash: Mapped[str] = mapped_column(Text, primary_key=True)
    wallet_address: Mapped[str | None] = mapped_column(Text, index=True, nullable=True)
    tier: Mapped[str] = mapped_column(Text, nullable=False)
    daily_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    entitlement_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    agent_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @classmethod
    def usable_clause(cls, now: datetime) -> ColumnElement[bool]:
        """SQL predicate matching keys that may authenticate at `now`."""
        return and_(
            cls.enabled.is_(True),
            cls.revoked_at.is_(None),
            or_(cls.expires_at.is_(None), cls.expires_at > now),
            or_(cls.entitlement_expires_at.is_(None), cls.entitlement_expires_at > now),
        )

    def is_usable(self, now: datetime | None = None) -> bool:
        """Python-side mirror of :meth:`usable_clause`."""
        now = now or utcnow()
        if not self.enabled or self.revoked_at is not None:
            return False
        expires_at = as_utc(self.expires_at)
        if expires_at is not None and expires_at <= now:
            return False
        entitlement_expires_at = as_utc(self.entitlement_expires_at)
        return entitlement_expires_at is None or entitlement_expires_at > now

    @property
    def state(self) -> str:
        """Lifecycle state: ``active``, ``revoked`` or the derived ``expired``."""
        if not self.enabled or self.revoked_at is not None:
            return "revoked"
        return "active" if self.is_usable() else "expired"


class ApiKeyOwner(Base):
    """One row per wallet that has claimed a key.

    The issuer locks this row for the duration of a claim so that the
    revoke-then-insert sequence is serialized per wallet.
    """

    __tablename__ = "api_key_owner"

    wallet_address: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    last_claim_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
