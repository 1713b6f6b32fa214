"""Bounded retries for idempotent store operations.

Only quota counters and the plan cache go through here. The claim flow never
retries: a partially applied claim must be restarted with a fresh nonce.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import redis

from roaster_api.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.05  # Base delay in seconds
    max_delay: float = 0.5
    jitter: bool = True
    retryable_exceptions: tuple[type[BaseException], ...] = (
        redis.ConnectionError,
        redis.TimeoutError,
    )


def _delay_for(attempt: int, config: RetryConfig) -> float:
    delay = min(config.base_delay * (2 ** (attempt - 1)), config.max_delay)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


def retry_transient(
    operation: Callable[[], T],
    *,
    config: RetryConfig | None = None,
    description: str = "store operation",
) -> T:
    """Run `operation`, retrying transient Redis failures with backoff.

    Raises:
        StoreUnavailable: When every attempt failed with a retryable error.
    """
    config = config or RetryConfig()
    attempts = max(1, config.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except config.retryable_exceptions as exc:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", description, attempt, exc)
                raise StoreUnavailable() from exc
            delay = _delay_for(attempt, config)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                description,
                attempt,
                attempts,
                delay,
                exc,
            )
            time.sleep(delay)
    raise StoreUnavailable()  # pragma: no cover - loop always returns or raises
