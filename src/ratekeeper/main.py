import logging
from fastapi import FastAPI
from ratekeeper.config import settings
from ratekeeper.logging import setup_logging
from ratekeeper.api.health import router as health_router
from ratekeeper.api.counters import router as counters_router
from ratekeeper.api.gateway import router as gateway_router
from ratekeeper.deps.redis import close_redis


setup_logging(settings.log_level)
logger = logging.getLogger("ratekeeper")

app = FastAPI(title="Ratekeeper", version="0.1.0")

app.include_router(health_router)
app.include_router(counters_router)
app.include_router(gateway_router)


@app.on_event("startup")
async def startup():
    logger.info(
        "ratekeeper_started",
        extra={"app_env": settings.app_env, "prefix": settings.limiter_prefix},
    )


@app.on_event("shutdown")
async def shutdown():
    await close_redis()
