"""Explicitly constructed service context.

One :class:`ServiceContext` owns every store connection and collaborator the
service uses. The FastAPI lifespan opens it at startup and closes it at
shutdown; request dependencies read it from ``app.state.context``. Tests build
their own context around SQLite, fakeredis and stub collaborators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import redis
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from roaster_api.core.retry import RetryConfig
from roaster_api.core.settings import Settings
from roaster_api.db.session import build_engine, build_session_factory
from roaster_api.services.api_keys import ApiKeyIssuer, ApiKeyValidator
from roaster_api.services.generation import RoastGenerator
from roaster_api.services.ledger import LedgerClient, load_ledger_config
from roaster_api.services.nonce import ChallengeContext, NonceService
from roaster_api.services.plans import PlanCatalog
from roaster_api.services.quota import QuotaService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Stores, collaborators and the core services wired on top of them."""

    settings: Settings
    engine: Engine
    redis: redis.Redis
    ledger: LedgerClient
    generator: RoastGenerator

    session_factory: sessionmaker[Session] = field(init=False)
    nonces: NonceService = field(init=False)
    quotas: QuotaService = field(init=False)
    plans: PlanCatalog = field(init=False)
    issuer: ApiKeyIssuer = field(init=False)
    validator: ApiKeyValidator = field(init=False)

    def __post_init__(self) -> None:
        retry_config = RetryConfig(max_attempts=self.settings.store_retry_attempts)
        self.session_factory = build_session_factory(self.engine)
        self.nonces = NonceService(
            self.redis,
            ChallengeContext.from_settings(self.settings),
            ttl_seconds=self.settings.nonce_ttl_seconds,
        )
        self.quotas = QuotaService(self.redis, retry_config=retry_config)
        self.plans = PlanCatalog(
            self.redis,
            self.ledger,
            ttl_seconds=self.settings.plan_cache_ttl_seconds,
            retry_config=retry_config,
        )
        self.issuer = ApiKeyIssuer(self.settings.api_key_salt)
        self.validator = ApiKeyValidator(self.settings.api_key_salt, self.session_factory)

    @classmethod
    def open(cls, settings: Settings) -> ServiceContext:
        """Connect to the configured stores and collaborators."""
        for name in settings.missing_configuration():
            logger.warning("%s is not set", name)

        engine = build_engine(
            settings.effective_database_url,
            echo=settings.sql_debug,
            pool_size=settings.db_pool_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
            connect_timeout_seconds=settings.db_connect_timeout_seconds,
            pool_timeout=settings.db_pool_timeout_seconds,
        )
        client = redis.Redis.from_url(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
            socket_connect_timeout=settings.redis_socket_timeout_seconds,
            decode_responses=True,
        )
        return cls(
            settings=settings,
            engine=engine,
            redis=client,
            ledger=LedgerClient(load_ledger_config(settings)),
            generator=RoastGenerator.from_settings(settings),
        )

    async def close(self) -> None:
        """Release every connection. Safe to call once at shutdown."""
        await self.ledger.close()
        await self.generator.close()
        try:
            self.redis.close()
        except redis.RedisError as exc:
            logger.warning("Error closing Redis connection: %s", exc)
        self.engine.dispose()
