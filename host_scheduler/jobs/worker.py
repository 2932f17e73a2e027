"""
Worker entrypoint for host scheduler background jobs.

    python -m host_scheduler.jobs.worker host_reconcile
    WORKER_JOB=host_reconcile_once python -m host_scheduler.jobs.worker

The first CLI argument wins over WORKER_JOB; with neither set the periodic
reconcile job runs.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from host_scheduler.config import settings
from host_scheduler.features.host_assignment.jobs import (
    run_host_reconcile_once,
    start_host_reconcile_scheduler,
)
from host_scheduler.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

DEFAULT_JOB = "host_reconcile"

JOB_REGISTRY: dict[str, Callable[[], Awaitable[None]]] = {
    "host_reconcile": start_host_reconcile_scheduler,
    "host_reconcile_once": run_host_reconcile_once,
}


def _resolve_job_name() -> str:
    requested = sys.argv[1] if len(sys.argv) > 1 else os.getenv("WORKER_JOB", DEFAULT_JOB)
    return requested.strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    name = (job_name or _resolve_job_name()).strip().lower()
    job = JOB_REGISTRY.get(name)
    if job is None:
        available = ", ".join(sorted(JOB_REGISTRY))
        raise ValueError(f"Unknown worker job '{name}'. Available jobs: {available}")

    logger.info("Starting host scheduler worker", job=name)
    await job()


def main() -> None:
    setup_logging(log_level=settings.log_level)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
