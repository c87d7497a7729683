from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from ratekeeper.core.errors import (
    LimiterError,
    OptimisticConflict,
    RetryExhausted,
    translate_redis_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWork = Callable[[Pipeline], Awaitable[T]]


async def run_transaction(
    client: Redis,
    key: str,
    work: UnitOfWork,
    max_retry: int,
) -> T:
    """
    Run `work` against a pipeline that WATCHes `key`, retrying on conflicts.

    A conflict is either redis aborting EXEC (WatchError) or the unit of work
    raising OptimisticConflict. Each attempt gets a fresh pipeline and a fresh
    WATCH. Any other LimiterError raised by the unit of work ends the loop at
    once; that is how a unit of work aborts without further attempts.
    Connection failures are never retried here.
    """
    attempts = max(1, max_retry)
    last_conflict: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            async with client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                return await work(pipe)
        except (WatchError, OptimisticConflict) as exc:
            last_conflict = exc
            logger.debug("transaction_conflict", extra={"key": key, "attempt": attempt})
            continue
        except LimiterError:
            raise
        except RedisError as exc:
            raise translate_redis_error(exc) from exc

    logger.warning("transaction_retry_exhausted", extra={"key": key, "attempt": attempts})
    raise RetryExhausted(f"retry limit exceeded after {attempts} attempt(s)") from last_conflict
