from redis.asyncio import Redis

from ratekeeper.config import settings
from ratekeeper.core.counter import RedisCounterStore

redis_client: Redis | None = None
counter_store: RedisCounterStore | None = None


async def get_redis() -> Redis:
    # Lazy singleton; the connection pool is shared by every request
    global redis_client
    if redis_client is None:
        redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    return redis_client


async def get_counter_store() -> RedisCounterStore:
    global counter_store
    if counter_store is None:
        counter_store = RedisCounterStore.from_settings(await get_redis(), settings)
    return counter_store


async def close_redis() -> None:
    global redis_client, counter_store
    counter_store = None
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
