"""
Async PostgreSQL pool shared by the API process and the reconcile worker.
"""

import asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from host_scheduler.config import settings
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabasePoolManager:
    """Owns the AsyncConnectionPool from startup to shutdown."""

    def __init__(self):
        self.pool: AsyncConnectionPool | None = None
        self._initialized = False
        self._closed = False

    async def initialize(self) -> None:
        if self._initialized:
            logger.warning("Database pool already initialized")
            return
        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")

        pool_config = settings.get_db_pool_config()
        logger.info(
            "Opening database pool",
            host=settings.database_host(),
            min_size=pool_config["min_size"],
            max_size=pool_config["max_size"],
        )

        try:
            self.pool = AsyncConnectionPool(
                conninfo=settings.DATABASE_URL,
                open=False,
                check=AsyncConnectionPool.check_connection,
                configure=self._configure_connection,
                **pool_config,
            )
            await self.pool.open(wait=True)
            self._initialized = True

            async with self.connection() as conn:
                await conn.execute("SELECT 1")

        except Exception as e:
            logger.error("Failed to open database pool", error=str(e))
            self._initialized = False
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        logger.info("Database pool ready")

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        """Per-connection session setup."""
        conn.row_factory = dict_row

        # Registry writes are single statements; schema setup opens its own transaction
        await conn.set_autocommit(True)

        app_name = f"host-scheduler-{settings.environment}"
        await conn.execute(sql.SQL("SET application_name = {}").format(sql.Literal(app_name)))
        await conn.execute("SET timezone = 'UTC'")
        await conn.execute("SET statement_timeout = '30s'")

    async def close(self) -> None:
        if not self._initialized or self._closed:
            return

        logger.info("Closing database pool")
        try:
            await asyncio.wait_for(self.pool.close(), timeout=30.0)
        except TimeoutError:
            logger.warning("Database pool close timed out")
        finally:
            self._initialized = False
            self._closed = True

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if not self._initialized:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")
        if self._closed:
            raise RuntimeError("Database pool is closed")

        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Connection inside a transaction: commit on exit, rollback on error."""
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> dict[str, Any]:
        """Round-trip a trivial query and report pool occupancy."""
        if not self._initialized or self._closed:
            return {"healthy": False, "error": "Pool not open", "service": "database_pool"}

        started = time.time()
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"healthy": False, "error": str(e), "service": "database_pool"}

        stats = self.pool.get_stats()
        return {
            "healthy": True,
            "service": "database_pool",
            "connection_time_ms": round((time.time() - started) * 1000, 2),
            "pool_size": stats.get("pool_size", 0),
            "pool_available": stats.get("pool_available", 0),
            "requests_waiting": stats.get("requests_waiting", 0),
        }


db_pool = DatabasePoolManager()


async def get_db_connection():
    return db_pool.connection()


async def get_db_transaction():
    return db_pool.transaction()


async def db_health_check() -> dict[str, Any]:
    return await db_pool.health_check()
