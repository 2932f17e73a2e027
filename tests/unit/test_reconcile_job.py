import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from host_scheduler.features.host_assignment.domain import ReconcileReport
from host_scheduler.features.host_assignment.jobs.reconcile_job import LOCK_KEY, HostReconcileJob
from host_scheduler.services.redis_client import FastRedisClient, LockUnavailableError


def _reconciler_returning(report: ReconcileReport):
    reconciler = AsyncMock()
    reconciler.reconcile = AsyncMock(return_value=report)
    return reconciler


@pytest.mark.asyncio
async def test_run_once_returns_report_and_releases_lock(fake_redis):
    report = ReconcileReport(started_at=datetime(2026, 5, 4, tzinfo=UTC), hosts_checked=2)
    job = HostReconcileJob(_reconciler_returning(report), fake_redis)

    result = await job.run_once()

    assert result["hosts_checked"] == 2
    assert result["corrections_applied"] == 0
    assert LOCK_KEY not in fake_redis.store
    assert job.is_running is False


@pytest.mark.asyncio
async def test_run_once_skips_when_lock_held(fake_redis):
    fake_redis.store[LOCK_KEY] = "other-worker"
    reconciler = _reconciler_returning(ReconcileReport(started_at=datetime.now(UTC)))
    job = HostReconcileJob(reconciler, fake_redis)

    result = await job.run_once()

    assert result == {"skipped": True, "reason": "lock_held"}
    reconciler.reconcile.assert_not_awaited()
    assert fake_redis.store[LOCK_KEY] == "other-worker"


@pytest.mark.asyncio
async def test_run_once_skips_when_already_running(fake_redis):
    reconciler = _reconciler_returning(ReconcileReport(started_at=datetime.now(UTC)))
    job = HostReconcileJob(reconciler, fake_redis)
    job.is_running = True

    result = await job.run_once()

    assert result["skipped"] is True
    reconciler.reconcile.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_once_without_redis_uses_local_guard_only(fake_redis):
    fake_redis.configured = False
    fake_redis.acquire_lock = AsyncMock()
    report = ReconcileReport(started_at=datetime.now(UTC))
    job = HostReconcileJob(_reconciler_returning(report), fake_redis)

    result = await job.run_once()

    assert "skipped" not in result
    fake_redis.acquire_lock.assert_not_awaited()


@pytest.mark.asyncio
async def test_lock_released_when_reconcile_fails(fake_redis):
    reconciler = AsyncMock()
    reconciler.reconcile = AsyncMock(side_effect=RuntimeError("db gone"))
    job = HostReconcileJob(reconciler, fake_redis)

    with pytest.raises(RuntimeError):
        await job.run_once()

    assert LOCK_KEY not in fake_redis.store
    assert job.is_running is False


@pytest.mark.asyncio
async def test_unreachable_redis_is_not_reported_as_lock_held(fake_redis):
    fake_redis.reachable = False
    reconciler = _reconciler_returning(ReconcileReport(started_at=datetime.now(UTC)))
    job = HostReconcileJob(reconciler, fake_redis)

    result = await job.run_once()

    assert result == {"skipped": True, "reason": "lock_unavailable"}
    reconciler.reconcile.assert_not_awaited()
    assert job.is_running is False


@pytest.mark.asyncio
async def test_acquire_lock_raises_when_redis_unreachable():
    client = FastRedisClient(url="redis://cache.internal:6379/0")
    client._initialized = True
    client.client = MagicMock()
    client.client.set = AsyncMock(side_effect=redis.ConnectionError("Connection refused"))

    with pytest.raises(LockUnavailableError):
        await client.acquire_lock(LOCK_KEY, "token", 60)


@pytest.mark.asyncio
async def test_concurrent_runs_in_one_process_do_not_overlap(fake_redis):
    release = asyncio.Event()

    async def slow_reconcile():
        await release.wait()
        return ReconcileReport(started_at=datetime.now(UTC), hosts_checked=1)

    reconciler = AsyncMock()
    reconciler.reconcile = AsyncMock(side_effect=slow_reconcile)
    fake_redis.configured = False
    job = HostReconcileJob(reconciler, fake_redis)

    first = asyncio.create_task(job.run_once())
    await asyncio.sleep(0)
    second = await job.run_once()
    release.set()

    assert second == {"skipped": True, "reason": "already_running"}
    assert (await first)["hosts_checked"] == 1
    assert reconciler.reconcile.await_count == 1
