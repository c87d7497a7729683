"""
Single-attempt counter operations.

Every function here receives a pipeline that is already WATCHing `key`, so
commands sent before `multi()` run immediately and the queued block after it
is committed only if nobody touched the key in between. Retrying is the
transaction runner's job.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from redis.asyncio.client import Pipeline
from redis.exceptions import ResponseError

from ratekeeper.core.errors import ExpiryFixupFailed, MalformedState
from ratekeeper.core.ttl import Ttl, TtlKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncrementResult:
    created: bool
    count: int
    # None means no usable TTL was observed: start a full period
    ttl: timedelta | None


@dataclass(frozen=True)
class PeekResult:
    count: int
    ttl: timedelta | None


def _to_ms(period: timedelta) -> int:
    return max(1, int(period.total_seconds() * 1000))


def _parse_count(raw) -> int:
    if raw is None:
        return 0
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise MalformedState(f"stored value {raw!r} is not an integer") from None


async def increment_window(pipe: Pipeline, key: str, period: timedelta) -> IncrementResult:
    period_ms = _to_ms(period)

    created = await pipe.set(key, 1, nx=True, px=period_ms)
    if created:
        return IncrementResult(created=True, count=1, ttl=None)

    pipe.multi()
    pipe.incr(key)
    pipe.pttl(key)
    raw_count, raw_ttl = await pipe.execute()

    count = _parse_count(raw_count)
    ttl = Ttl.from_pttl(raw_ttl)

    if ttl.kind is TtlKind.POSITIVE:
        return IncrementResult(created=False, count=count, ttl=ttl.remaining)

    # INCR recreates an expired key without a TTL; such a counter would never reset.
    if ttl.needs_fixup:
        await _fix_expiry(pipe, key, period_ms)
        logger.info("window_expiry_fixed", extra={"key": key, "ttl_kind": ttl.kind.value})

    return IncrementResult(created=False, count=count, ttl=None)


async def _fix_expiry(pipe: Pipeline, key: str, period_ms: int) -> None:
    # execute() has reset the pipeline, so this is queued and sent as its own MULTI/EXEC
    pipe.pexpire(key, period_ms)
    try:
        (ok,) = await pipe.execute()
    except ResponseError as exc:
        logger.warning("window_expiry_fixup_failed", extra={"key": key})
        raise ExpiryFixupFailed(f"cannot configure timeout on key: {exc}") from exc

    if not ok:
        logger.warning("window_expiry_fixup_failed", extra={"key": key})
        raise ExpiryFixupFailed("cannot configure timeout on key")


async def peek_window(pipe: Pipeline, key: str) -> PeekResult:
    pipe.multi()
    pipe.get(key)
    pipe.pttl(key)
    raw_value, raw_ttl = await pipe.execute()

    ttl = Ttl.from_pttl(raw_ttl)
    return PeekResult(
        count=_parse_count(raw_value),
        ttl=ttl.remaining if ttl.kind is TtlKind.POSITIVE else None,
    )


async def reset_window(pipe: Pipeline, key: str) -> int:
    removed = await pipe.delete(key)
    return int(removed or 0)
