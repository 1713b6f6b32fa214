"""Daily request quotas anchored to the UTC day boundary.

Counters live in Redis under ``roaster:daily:{scope}:{YYYY-MM-DD}:{identity}``
and expire at the next UTC midnight, so no reset job is needed. Each hit runs
``SET key 0 EX ttl NX`` and ``INCR key`` inside one MULTI/EXEC transaction:
the counter is created together with its expiry, leaving no window in which
a crash could strand a counter without a TTL.

A request is allowed while the post-increment count is within the limit.
Rejected requests still consume a slot.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Final

import redis

from roaster_api.core.errors import QuotaExceeded
from roaster_api.core.retry import RetryConfig, retry_transient
from roaster_api.core.settings import Settings
from roaster_api.db.time import utcnow
from roaster_api.models import ApiKey

logger = logging.getLogger(__name__)

QUOTA_KEY_PREFIX: Final[str] = "roaster:daily"
SCOPE_KEY: Final[str] = "key"
SCOPE_FREE: Final[str] = "free"
SCOPE_FREE_IP: Final[str] = "free-ip"

_REQUESTER_MAX_LENGTH: Final[int] = 48
_REQUESTER_STRIP_RE = re.compile(r"[^a-zA-Z0-9_-]")


def utc_day_key(now: datetime | None = None) -> str:
    """Return the UTC calendar day as ``YYYY-MM-DD``."""
    return (now or utcnow()).astimezone(UTC).strftime("%Y-%m-%d")


def seconds_until_utc_midnight(now: datetime | None = None) -> int:
    """Seconds from `now` until the next UTC midnight, never less than 1."""
    now = (now or utcnow()).astimezone(UTC)
    next_midnight = datetime(now.year, now.month, now.day, tzinfo=UTC) + timedelta(days=1)
    return max(1, int((next_midnight - now).total_seconds()))


def clean_requester(value: object) -> str:
    """Sanitize a caller-supplied bot name for logs and Redis keys."""
    if not isinstance(value, str):
        return ""
    return _REQUESTER_STRIP_RE.sub("", value.strip()[:_REQUESTER_MAX_LENGTH])


def daily_limit_for(record: ApiKey, tier_limits: dict[str, int]) -> int:
    """Per-key override when set and positive, else the tier default.

    Unrecognized stored tier names fall back to the ``basic`` limit.
    """
    if record.daily_limit is not None and record.daily_limit > 0:
        return int(record.daily_limit)
    tier = (record.tier or "").lower()
    return tier_limits.get(tier, tier_limits["basic"])


@dataclass(frozen=True)
class QuotaResult:
    """Outcome of a single counted request."""

    scope: str
    used: int
    limit: int
    day: str

    @property
    def allowed(self) -> bool:
        return self.used <= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


class QuotaService:
    """Count requests per scope and identity for the current UTC day."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._redis = client
        self._retry_config = retry_config or RetryConfig()

    @staticmethod
    def counter_key(scope: str, identity: str, day: str) -> str:
        return f"{QUOTA_KEY_PREFIX}:{scope}:{day}:{identity}"

    def hit(
        self,
        scope: str,
        identity: str,
        limit: int,
        *,
        now: datetime | None = None,
    ) -> QuotaResult:
        """Count one request and report whether it fits within `limit`."""
        now = now or utcnow()
        day = utc_day_key(now)
        key = self.counter_key(scope, identity, day)
        ttl = seconds_until_utc_midnight(now)

        def _increment() -> int:
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(key, 0, ex=ttl, nx=True)
            pipe.incr(key)
            _, used = pipe.execute()
            return int(used)

        used = retry_transient(
            _increment,
            config=self._retry_config,
            description=f"quota increment ({scope})",
        )
        return QuotaResult(scope=scope, used=used, limit=limit, day=day)

    def check_anonymous(
        self,
        client_ip: str,
        requester: str,
        *,
        settings: Settings,
        now: datetime | None = None,
    ) -> QuotaResult:
        """Apply the per-IP ceiling, then the per-IP-and-requester limit.

        Raises:
            QuotaExceeded: When either counter went past its limit.
        """
        ip_result = self.hit(SCOPE_FREE_IP, client_ip, settings.free_ip_daily_limit, now=now)
        if not ip_result.allowed:
            logger.info("Free IP limit reached for %s", client_ip)
            raise QuotaExceeded(
                "Free IP limit reached",
                hint="Too many free requests from this IP today",
                daily_limit=ip_result.limit,
                reset_utc_day=ip_result.day,
            )

        free_id = f"{client_ip}:{requester.lower()}"
        result = self.hit(SCOPE_FREE, free_id, settings.free_daily_limit, now=now)
        if not result.allowed:
            logger.info("Free daily limit reached for %s", free_id)
            raise QuotaExceeded(
                "Free daily limit reached",
                hint="Add Authorization: Bearer <API_KEY> for higher limits",
                daily_limit=result.limit,
                reset_utc_day=result.day,
            )
        return result

    def check_key(
        self,
        record: ApiKey,
        *,
        settings: Settings,
        now: datetime | None = None,
    ) -> QuotaResult:
        """Apply the key's tier limit (or its per-key override).

        Raises:
            QuotaExceeded: When the key's counter went past its limit.
        """
        limit = daily_limit_for(record, settings.tier_limits)
        result = self.hit(SCOPE_KEY, record.key_hash, limit, now=now)
        if not result.allowed:
            tier = (record.tier or "basic").lower()
            logger.info("%s daily limit reached for key %s", tier, record.key_hash[:12])
            raise QuotaExceeded(
                f"{tier} daily limit reached",
                daily_limit=result.limit,
                reset_utc_day=result.day,
            )
        return result
