from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Callable

from redis.asyncio import Redis

from ratekeeper.config import Settings
from ratekeeper.core.errors import LimiterError, OperationTimeout
from ratekeeper.core.rate import Rate, WindowState, window_key
from ratekeeper.core.transaction import UnitOfWork, run_transaction
from ratekeeper.core.window import increment_window, peek_window, reset_window

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "limiter"
DEFAULT_MAX_RETRY = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RedisCounterStore:
    """
    Fixed-window counters kept in redis, one key per identifier.

    get() records an event, peek() only reads, reset() drops the counter.
    All three return a WindowState; deciding whether the limit is exceeded is
    up to the caller (see LimitContext).
    """

    def __init__(
        self,
        client: Redis,
        prefix: str = DEFAULT_PREFIX,
        max_retry: int = DEFAULT_MAX_RETRY,
        clock: Callable[[], datetime] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.max_retry = max_retry if max_retry > 0 else 1
        self.timeout = timeout
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(cls, client: Redis, settings: Settings) -> "RedisCounterStore":
        return cls(
            client,
            prefix=settings.limiter_prefix,
            max_retry=settings.limiter_max_retry,
            timeout=settings.limiter_timeout_seconds,
        )

    async def get(self, identifier: str, rate: Rate, timeout: float | None = None) -> WindowState:
        key = window_key(self.prefix, identifier)
        now = self._clock()

        result = await self._run(
            "get", key, partial(increment_window, key=key, period=rate.period), timeout
        )

        if result.created:
            return WindowState(now=now, reset_at=now + rate.period, count=1)

        ttl = result.ttl if result.ttl is not None else rate.period
        return WindowState(now=now, reset_at=now + ttl, count=result.count)

    async def peek(self, identifier: str, rate: Rate, timeout: float | None = None) -> WindowState:
        key = window_key(self.prefix, identifier)
        now = self._clock()

        result = await self._run("peek", key, partial(peek_window, key=key), timeout)

        ttl = result.ttl if result.ttl is not None else rate.period
        return WindowState(now=now, reset_at=now + ttl, count=result.count)

    async def reset(self, identifier: str, rate: Rate, timeout: float | None = None) -> WindowState:
        key = window_key(self.prefix, identifier)
        now = self._clock()

        removed = await self._run("reset", key, partial(reset_window, key=key), timeout)
        logger.debug("window_reset", extra={"key": key, "removed": removed})

        return WindowState(now=now, reset_at=now + rate.period, count=0)

    async def _run(self, op: str, key: str, work: UnitOfWork, timeout: float | None):
        timeout = self.timeout if timeout is None else timeout
        try:
            if timeout is None:
                return await run_transaction(self.client, key, work, self.max_retry)
            return await asyncio.wait_for(
                run_transaction(self.client, key, work, self.max_retry), timeout
            )
        except asyncio.TimeoutError as exc:
            raise OperationTimeout(f"no result within {timeout}s").wrap(op, key) from exc
        except LimiterError as exc:
            logger.warning("counter_operation_failed", extra={"key": key, "op": op})
            raise exc.wrap(op, key) from exc
