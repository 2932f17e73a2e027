"""
Host reconcile background job.

Runs the reconciler on a fixed interval. Overlapping runs are prevented
in-process with a flag and across worker processes with a Redis lock when
REDIS_URL is configured.

Usage:
    python -m host_scheduler.jobs.worker host_reconcile
"""

import asyncio
import uuid

from host_scheduler.config import settings
from host_scheduler.db.pool import db_pool
from host_scheduler.features.host_assignment.services.reconciler import (
    HostReconciler,
    host_reconciler,
)
from host_scheduler.infrastructure.observability.logging import get_logger
from host_scheduler.services.redis_client import (
    FastRedisClient,
    LockUnavailableError,
    fast_redis,
)

logger = get_logger(__name__)

LOCK_KEY = "locks:host_reconcile"


class HostReconcileJob:
    """Single-flight wrapper around HostReconciler."""

    def __init__(
        self,
        reconciler: HostReconciler | None = None,
        redis_client: FastRedisClient | None = None,
    ):
        self.reconciler = reconciler or host_reconciler
        self.redis = redis_client or fast_redis
        self.is_running = False

    async def run_once(self) -> dict:
        """
        Run one reconciliation pass.

        Returns:
            dict: the reconcile report, or {"skipped": True, "reason": ...}
            with reason already_running, lock_held or lock_unavailable
        """
        if self.is_running:
            logger.warning("Host reconcile already running in this process, skipping")
            return {"skipped": True, "reason": "already_running"}

        # Claimed before the first await so concurrent callers in this process see it
        self.is_running = True
        try:
            if not self.redis.configured:
                return await self._reconcile()

            token = uuid.uuid4().hex
            try:
                acquired = await self.redis.acquire_lock(
                    LOCK_KEY, token, settings.HOST_RECONCILE_LOCK_TTL_SECONDS
                )
            except LockUnavailableError as e:
                logger.error("Host reconcile lock unavailable, skipping", error=str(e))
                return {"skipped": True, "reason": "lock_unavailable"}

            if not acquired:
                logger.info("Host reconcile lock held elsewhere, skipping")
                return {"skipped": True, "reason": "lock_held"}

            try:
                return await self._reconcile()
            finally:
                await self.redis.release_lock(LOCK_KEY, token)
        finally:
            self.is_running = False

    async def _reconcile(self) -> dict:
        report = await self.reconciler.reconcile()
        return report.to_dict()


host_reconcile_job = HostReconcileJob()


async def start_host_reconcile_scheduler() -> None:
    """Open resources and reconcile every HOST_RECONCILE_INTERVAL_MINUTES."""
    interval_minutes = settings.HOST_RECONCILE_INTERVAL_MINUTES
    logger.info("Starting host reconcile scheduler", interval_minutes=interval_minutes)

    await db_pool.initialize()
    if fast_redis.configured:
        await fast_redis.initialize()

    try:
        while True:
            try:
                result = await host_reconcile_job.run_once()
                if not result.get("skipped", False):
                    logger.info(
                        "Host reconcile cycle completed",
                        hosts_checked=result["hosts_checked"],
                        corrections_applied=result["corrections_applied"],
                    )
            except Exception as e:
                logger.error(
                    "Error in host reconcile scheduler", error=str(e), error_type=type(e).__name__
                )

            await asyncio.sleep(interval_minutes * 60)
    finally:
        await fast_redis.close()
        await db_pool.close()


async def run_host_reconcile_once() -> None:
    """One-shot reconciliation for on-demand runs from the worker CLI."""
    await db_pool.initialize()
    if fast_redis.configured:
        await fast_redis.initialize()

    try:
        result = await host_reconcile_job.run_once()
        logger.info("On-demand host reconcile finished", result=result)
    finally:
        await fast_redis.close()
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(start_host_reconcile_scheduler())
