"""
Redis access for cross-process coordination.

The host scheduler only needs Redis for the reconcile job's single-flight
lock, so the client exposes ping plus a token-checked lock and nothing else.
Redis is optional: when REDIS_URL is unset, ``configured`` is False and
callers skip it.
"""

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from host_scheduler.config import settings
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Delete only if the stored token is ours, so an expired-and-retaken lock survives
RELEASE_LOCK_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class LockUnavailableError(Exception):
    """Redis could not be reached, so lock ownership is unknown."""


class FastRedisClient:
    """Pooled asyncio Redis client."""

    def __init__(self, url: str | None = None):
        self.url = url
        self.pool: ConnectionPool | None = None
        self.client: redis.Redis | None = None
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(self.url or settings.REDIS_URL)

    async def initialize(self) -> None:
        if self._initialized:
            return

        redis_url = self.url or settings.REDIS_URL
        if not redis_url:
            raise RuntimeError("REDIS_URL is not configured")

        logger.info("Connecting to Redis", url_preview=redis_url[:30] + "...")
        try:
            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=5,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                retry_on_error=[redis.ConnectionError, redis.TimeoutError],
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
        except Exception as e:
            logger.error("Redis connection failed", error=str(e))
            raise RuntimeError("Redis initialization failed") from e

        self._initialized = True
        logger.info("Redis connected")

    async def close(self) -> None:
        if not self._initialized:
            return
        try:
            await self.client.aclose()
            await self.pool.disconnect()
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))
        finally:
            self._initialized = False

    async def _client(self) -> redis.Redis:
        if not self._initialized:
            await self.initialize()
        return self.client

    async def ping(self) -> bool:
        try:
            client = await self._client()
            return bool(await client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def acquire_lock(self, key: str, token: str, ttl_s: int) -> bool:
        """
        SET NX EX. True if this caller now holds the lock, False if someone else does.

        Raises LockUnavailableError when Redis cannot answer.
        """
        try:
            client = await self._client()
            return bool(await client.set(key, token, nx=True, ex=ttl_s))
        except (RuntimeError, redis.RedisError) as e:
            logger.error("Redis lock acquire failed", key=key, error=str(e))
            raise LockUnavailableError(f"Cannot acquire {key}: {e}") from e

    async def release_lock(self, key: str, token: str) -> bool:
        try:
            client = await self._client()
            return int(await client.eval(RELEASE_LOCK_SCRIPT, 1, key, token)) > 0
        except Exception as e:
            logger.error("Redis lock release failed", key=key, error=str(e))
            return False


fast_redis = FastRedisClient()
