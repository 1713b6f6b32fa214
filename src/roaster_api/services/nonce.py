"""Single-use sign-in challenges for the API key claim flow."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Final

import redis

from roaster_api.core.errors import ChallengeExpired, StoreUnavailable
from roaster_api.core.security import generate_nonce
from roaster_api.core.settings import Settings
from roaster_api.db.time import utcnow

logger = logging.getLogger(__name__)

CLAIM_MESSAGE_TITLE: Final[str] = "TheRoaster API Key Claim"
NONCE_KEY_PREFIX: Final[str] = "roaster:nonce"


@dataclass(frozen=True)
class ChallengeContext:
    """Fixed values embedded in every claim message."""

    domain: str
    chain_id: int
    contract_address: str

    @classmethod
    def from_settings(cls, settings: Settings) -> ChallengeContext:
        return cls(
            domain=settings.domain,
            chain_id=settings.chain_id,
            contract_address=settings.contract_address or "",
        )


def _isoformat(moment: datetime) -> str:
    """Millisecond ISO-8601 with a ``Z`` suffix, e.g. ``2026-01-01T00:00:00.000Z``."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_claim_message(context: ChallengeContext, address: str, nonce: str, issued_at: str) -> str:
    """Return the exact text a wallet signs to claim an API key."""
    return "\n".join(
        (
            CLAIM_MESSAGE_TITLE,
            f"Domain: {context.domain}",
            f"ChainId: {context.chain_id}",
            f"Contract: {context.contract_address}",
            f"Address: {address}",
            f"Nonce: {nonce}",
            f"IssuedAt: {issued_at}",
        )
    )


class NonceService:
    """Issue and consume one pending challenge per wallet.

    Challenges live in Redis under ``roaster:nonce:{address}``. Issuing a new
    challenge overwrites the pending one; consuming deletes it atomically, so
    a signature can authorize at most one claim.
    """

    def __init__(
        self,
        client: redis.Redis,
        context: ChallengeContext,
        *,
        ttl_seconds: int = 300,
    ) -> None:
        self._redis = client
        self._context = context
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def _key(address: str) -> str:
        return f"{NONCE_KEY_PREFIX}:{address}"

    def issue_challenge(self, address: str, *, now: datetime | None = None) -> str:
        """Store a fresh challenge for `address` and return the message to sign."""
        nonce = generate_nonce()
        issued_at = _isoformat(now or utcnow())
        payload = json.dumps({"nonce": nonce, "issuedAt": issued_at})
        try:
            self._redis.set(self._key(address), payload, ex=self._ttl_seconds)
        except redis.RedisError as exc:
            logger.error("Failed to store challenge for %s: %s", address, exc)
            raise StoreUnavailable() from exc
        return build_claim_message(self._context, address, nonce, issued_at)

    def consume_challenge(self, address: str) -> str:
        """Atomically remove the pending challenge and return its message.

        Raises:
            ChallengeExpired: If no challenge is pending for `address`.
        """
        try:
            raw = self._redis.getdel(self._key(address))
        except redis.RedisError as exc:
            logger.error("Failed to consume challenge for %s: %s", address, exc)
            raise StoreUnavailable() from exc
        if raw is None:
            raise ChallengeExpired()

        try:
            stored = json.loads(raw)
            nonce = str(stored["nonce"])
            issued_at = str(stored["issuedAt"])
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Discarding corrupt challenge for %s", address)
            raise ChallengeExpired() from exc
        return build_claim_message(self._context, address, nonce, issued_at)
