from __future__ import annotations

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError


class LimiterError(Exception):
    """Base class for everything the counter store raises."""

    op: str | None = None
    key: str | None = None

    def wrap(self, op: str, key: str) -> "LimiterError":
        err = type(self)(f"limiter: cannot {op} value for {key}: {self}")
        err.op = op
        err.key = key
        return err


class StoreError(LimiterError):
    pass


class StoreUnavailable(LimiterError):
    pass


class OptimisticConflict(LimiterError):
    """Raised by a unit of work to ask the transaction runner for another attempt."""


class RetryExhausted(LimiterError):
    pass


class ExpiryFixupFailed(LimiterError):
    pass


class MalformedState(LimiterError):
    pass


class OperationTimeout(LimiterError):
    pass


def translate_redis_error(exc: RedisError) -> LimiterError:
    if isinstance(exc, (RedisConnectionError, RedisTimeoutError)):
        return StoreUnavailable(str(exc) or type(exc).__name__)
    # INCR on a non-numeric value: "value is not an integer or out of range"
    if isinstance(exc, ResponseError) and "not an integer" in str(exc):
        return MalformedState(str(exc))
    return StoreError(str(exc) or type(exc).__name__)
