"""
Health check endpoints with database pool and Redis monitoring.
"""

import time

from fastapi import APIRouter

from host_scheduler.db.pool import db_health_check
from host_scheduler.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "host-scheduler"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering the database pool and, when configured, Redis."""
    checks = {}
    overall_ok = True

    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {"ok": is_healthy, "latency_ms": round((time.time() - t0) * 1000, 1)}
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error")
        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    if fast_redis.configured:
        t0 = time.time()
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and redis_ok

    return {"overall_ok": overall_ok, "checks": checks}
