"""
Ops API for the host scheduler.

Serves health probes and the host status, availability and reconcile
endpoints. Host assignment itself runs in-process inside the scheduling code.
"""

import time
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request

from host_scheduler.config import settings
from host_scheduler.db.pool import db_pool
from host_scheduler.features.host_assignment.api.router import router as hosts_router
from host_scheduler.features.host_assignment.repository import host_registry
from host_scheduler.infrastructure.observability.logging import get_logger, setup_logging
from host_scheduler.routes import health
from host_scheduler.services.redis_client import fast_redis

setup_logging(log_level=settings.log_level, json_logs=not settings.debug)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool (and Redis when configured) and ensure the hosts table exists."""
    logger.info("Host scheduler starting", environment=settings.environment)

    async with AsyncExitStack() as resources:
        await db_pool.initialize()
        resources.push_async_callback(db_pool.close)

        await host_registry.create_schema()

        if fast_redis.configured:
            await fast_redis.initialize()
            resources.push_async_callback(fast_redis.close)

        logger.info("Host scheduler ready", redis_enabled=fast_redis.configured)
        yield
        logger.info("Host scheduler shutting down")


app = FastAPI(
    title="Host Scheduler",
    description="Capacity-aware meeting host assignment",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(hosts_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
