from fastapi import APIRouter, Depends
from redis.asyncio import Redis

from ratekeeper.deps.redis import get_redis

router = APIRouter()


@router.get("/health")
async def health(r: Redis = Depends(get_redis)):
    pong = await r.ping()
    return {
        "status": "ok",
        "redis": "ok" if pong else "unknown",
    }
