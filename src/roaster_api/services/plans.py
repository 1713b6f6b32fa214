"""Short-lived Redis cache in front of the contract's plan list."""

from __future__ import annotations

import json
import logging
from typing import Final

import redis

from roaster_api.core.errors import StoreUnavailable, UnknownPlan
from roaster_api.core.retry import RetryConfig, retry_transient
from roaster_api.services.ledger import LedgerClient, Plan

logger = logging.getLogger(__name__)

PLAN_CACHE_KEY: Final[str] = "roaster:plans:v1"


class PlanCatalog:
    """Serve plans from Redis, refreshing from the ledger every `ttl_seconds`.

    Prices can be changed by the contract owner, so the cache is kept short.
    A Redis outage degrades to reading the ledger directly.
    """

    def __init__(
        self,
        client: redis.Redis,
        ledger: LedgerClient,
        *,
        ttl_seconds: int = 60,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._redis = client
        self._ledger = ledger
        self._ttl_seconds = ttl_seconds
        self._retry_config = retry_config or RetryConfig()

    def _read_cache(self) -> list[Plan] | None:
        try:
            cached = retry_transient(
                lambda: self._redis.get(PLAN_CACHE_KEY),
                config=self._retry_config,
                description="plan cache read",
            )
        except StoreUnavailable:
            logger.warning("Plan cache unavailable; reading plans from the ledger")
            return None
        if not cached:
            return None
        try:
            return [Plan.from_dict(item) for item in json.loads(cached)]
        except (TypeError, ValueError, KeyError):
            logger.warning("Ignoring malformed plan cache entry")
            return None

    def _write_cache(self, plans: list[Plan]) -> None:
        payload = json.dumps([plan.to_dict() for plan in plans])
        try:
            retry_transient(
                lambda: self._redis.set(PLAN_CACHE_KEY, payload, ex=self._ttl_seconds),
                config=self._retry_config,
                description="plan cache write",
            )
        except StoreUnavailable:
            logger.warning("Plan cache write skipped")

    async def get_plans(self) -> list[Plan]:
        """Return the current plan list."""
        self._ledger.require_enabled()
        plans = self._read_cache()
        if plans is not None:
            return plans
        plans = await self._ledger.list_plans()
        self._write_cache(plans)
        return plans

    async def find_plan(self, tier: int, duration_id: int) -> Plan:
        """Return the plan for a tier/duration pair.

        Raises:
            UnknownPlan: If the contract does not sell that combination.
        """
        for plan in await self.get_plans():
            if plan.tier == tier and plan.duration_id == duration_id:
                return plan
        raise UnknownPlan()
