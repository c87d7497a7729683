from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ratekeeper.core.counter import RedisCounterStore
from ratekeeper.core.errors import LimiterError
from ratekeeper.core.rate import LimitContext, Rate, WindowState
from ratekeeper.deps.admin_auth import require_admin
from ratekeeper.deps.rate_limit import default_rate
from ratekeeper.deps.redis import get_counter_store

router = APIRouter(prefix="/admin/counters", tags=["admin"], dependencies=[Depends(require_admin)])


class CounterOut(BaseModel):
    identifier: str
    count: int
    limit: int
    remaining: int
    reached: bool
    reset_epoch: int
    reset_in_seconds: float


def requested_rate(
    rate: str | None = Query(default=None, max_length=32, description='Formatted rate such as "5-M"'),
    limit: int | None = Query(default=None, ge=0, le=1_000_000),
    period_seconds: int | None = Query(default=None, ge=1, le=31 * 86_400),
) -> Rate:
    # "rate" wins over the limit/period_seconds pair
    if rate is not None:
        try:
            return Rate.parse(rate)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    fallback = default_rate()
    return Rate(
        limit=fallback.limit if limit is None else limit,
        period=fallback.period if period_seconds is None else timedelta(seconds=period_seconds),
    )


def _counter_out(identifier: str, state: WindowState, rate: Rate) -> CounterOut:
    ctx = LimitContext.from_state(state, rate)
    return CounterOut(
        identifier=identifier,
        count=state.count,
        limit=ctx.limit,
        remaining=ctx.remaining,
        reached=ctx.reached,
        reset_epoch=ctx.reset_epoch,
        reset_in_seconds=state.reset_in.total_seconds(),
    )


def _unavailable(exc: LimiterError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("/{identifier}", response_model=CounterOut)
async def peek_counter(
    identifier: str,
    rate: Rate = Depends(requested_rate),
    store: RedisCounterStore = Depends(get_counter_store),
):
    try:
        state = await store.peek(identifier, rate)
    except LimiterError as exc:
        raise _unavailable(exc) from exc
    return _counter_out(identifier, state, rate)


@router.post("/{identifier}/hit", response_model=CounterOut)
async def hit_counter(
    identifier: str,
    rate: Rate = Depends(requested_rate),
    store: RedisCounterStore = Depends(get_counter_store),
):
    try:
        state = await store.get(identifier, rate)
    except LimiterError as exc:
        raise _unavailable(exc) from exc
    return _counter_out(identifier, state, rate)


@router.delete("/{identifier}", response_model=CounterOut)
async def reset_counter(
    identifier: str,
    rate: Rate = Depends(requested_rate),
    store: RedisCounterStore = Depends(get_counter_store),
):
    try:
        state = await store.reset(identifier, rate)
    except LimiterError as exc:
        raise _unavailable(exc) from exc
    return _counter_out(identifier, state, rate)
