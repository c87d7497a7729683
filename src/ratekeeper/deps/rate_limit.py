import logging
import math
from datetime import timedelta

from fastapi import Depends, Header, HTTPException, Request, Response, status

from ratekeeper.config import settings
from ratekeeper.core.counter import RedisCounterStore
from ratekeeper.core.errors import LimiterError
from ratekeeper.core.rate import LimitContext, Rate
from ratekeeper.deps.redis import get_counter_store

logger = logging.getLogger(__name__)


def default_rate() -> Rate:
    return Rate(
        limit=settings.rate_limit_requests,
        period=timedelta(seconds=settings.rate_limit_window_seconds),
    )


def client_identifier(request: Request, client_id: str | None) -> str:
    client_id = (client_id or "").strip()
    if client_id:
        return client_id
    return request.client.host if request.client else "anonymous"


async def enforce_rate_limit(
    request: Request,
    response: Response,
    store: RedisCounterStore = Depends(get_counter_store),
    x_client_id: str | None = Header(default=None, alias="X-Client-Id"),
) -> LimitContext:
    identifier = client_identifier(request, x_client_id)
    rate = default_rate()

    try:
        state = await store.get(identifier, rate)
    except LimiterError as exc:
        # fail closed: an unknown count is not a free pass
        logger.warning("rate_limit_unavailable", extra={"key": exc.key, "op": exc.op})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiter unavailable",
        ) from exc

    ctx = LimitContext.from_state(state, rate)
    headers = {
        "X-RateLimit-Limit": str(ctx.limit),
        "X-RateLimit-Remaining": str(ctx.remaining),
        "X-RateLimit-Reset": str(ctx.reset_epoch),
    }
    request.state.client_id = identifier

    if ctx.reached:
        headers["Retry-After"] = str(max(1, math.ceil(state.reset_in.total_seconds())))
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers=headers,
        )

    response.headers.update(headers)
    return ctx
