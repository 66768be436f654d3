"""
Redis client configuration and connection management
Redis 클라이언트 설정 및 연결 관리 - 인스턴스 간 실시간 중계, 룰렛 상태 캐시
"""

import redis.asyncio as redis
from typing import Optional
from photovote.core.config import settings
import logging
import json
import asyncio
import time

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis manager with connection recovery and error handling"""

    def __init__(self):
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._connection_retries = 0
        self._max_retries = 3
        self._retry_delay = 1.0
        self._health_check_interval = 30
        self._last_health_check = 0

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def initialize(self):
        """Initialize Redis connection pool"""
        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=30,
                encoding="utf-8",
                decode_responses=True
            )

            self.client = redis.Redis(connection_pool=self.pool)

            if not await self._test_connection():
                raise redis.ConnectionError(f"Redis not reachable at {settings.REDIS_URL}")

            logger.info("Redis manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis manager: {e}")
            self.client = None
            # Redis is optional outside production: the change feed stays process-local
            if settings.ENVIRONMENT == "production":
                raise

    async def _test_connection(self) -> bool:
        """Test Redis connection health"""
        try:
            if not self.client:
                return False

            await self.client.ping()
            self._connection_retries = 0
            self._last_health_check = time.time()
            return True

        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis connection test failed: {e}")
            return False

    async def _reconnect(self) -> bool:
        """Attempt to reconnect to Redis with exponential backoff"""
        if self._connection_retries >= self._max_retries:
            logger.error("Maximum Redis reconnection attempts exceeded")
            return False

        self._connection_retries += 1
        delay = self._retry_delay * (2 ** (self._connection_retries - 1))

        logger.info(f"Attempting Redis reconnection {self._connection_retries}/{self._max_retries} after {delay}s")
        await asyncio.sleep(delay)

        try:
            await self._close_connections()
            await self.initialize()
            return self.client is not None

        except Exception as e:
            logger.error(f"Redis reconnection attempt {self._connection_retries} failed: {e}")
            return False

    async def health_check(self) -> bool:
        """Perform periodic health check"""
        current_time = time.time()
        if current_time - self._last_health_check < self._health_check_interval:
            return True

        if await self._test_connection():
            return True

        return await self._reconnect()

    async def get_client(self) -> redis.Redis:
        """Get Redis client with health check"""
        if not self.client or not await self.health_check():
            raise RuntimeError("Redis connection unavailable")
        return self.client

    async def execute_with_retry(self, operation, *args, **kwargs):
        """Execute Redis operation with one retry on connection failure"""
        max_attempts = 2

        for attempt in range(max_attempts):
            try:
                client = await self.get_client()
                return await operation(client, *args, **kwargs)
            except (redis.ConnectionError, redis.TimeoutError) as e:
                if attempt == max_attempts - 1:
                    logger.error(f"Redis operation failed after {max_attempts} attempts: {e}")
                    raise
                logger.warning(f"Redis operation attempt {attempt + 1} failed, retrying: {e}")
                await asyncio.sleep(0.5)

    async def _close_connections(self):
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.aclose()

        self.client = None
        self.pool = None

    async def close(self):
        """Close Redis connections"""
        await self._close_connections()
        logger.info("Redis connections closed")

    async def set_roulette_state(self, round_id: str, state: dict, expire: int = None):
        """Cache the active roulette spin so late viewers can replay it"""
        if expire is None:
            expire = settings.ROULETTE_STATE_TTL

        async def _set_operation(client, round_id, state, expire):
            return await client.setex(
                f"roulette:{round_id}",
                expire,
                json.dumps(state, default=str)
            )

        await self.execute_with_retry(_set_operation, round_id, state, expire)

    async def get_roulette_state(self, round_id: str) -> Optional[dict]:
        """Read the cached roulette spin for a round"""
        async def _get_operation(client, round_id):
            data = await client.get(f"roulette:{round_id}")
            return json.loads(data) if data else None

        try:
            return await self.execute_with_retry(_get_operation, round_id)
        except Exception as e:
            logger.error(f"Failed to get roulette state: {e}")
            return None

    async def delete_roulette_state(self, round_id: str):
        """Drop the cached roulette spin once the round is committed"""
        async def _delete_operation(client, round_id):
            return await client.delete(f"roulette:{round_id}")

        await self.execute_with_retry(_delete_operation, round_id)

    async def publish_message(self, channel: str, message: dict):
        """Publish message to Redis channel with retry"""
        async def _publish_operation(client, channel, message):
            return await client.publish(channel, json.dumps(message, default=str))

        try:
            await self.execute_with_retry(_publish_operation, channel, message)
        except Exception as e:
            logger.error(f"Failed to publish message: {e}")
            raise


# Global Redis manager instance
redis_manager = RedisManager()


async def init_redis():
    """Initialize Redis connection pool"""
    await redis_manager.initialize()


async def close_redis():
    """Close Redis connections"""
    await redis_manager.close()


async def redis_health_check() -> dict:
    """Redis health check for monitoring"""
    if not redis_manager.is_connected:
        return {"status": "disabled", "connection_retries": redis_manager._connection_retries}

    try:
        is_healthy = await redis_manager.health_check()
        return {
            "status": "healthy" if is_healthy else "unhealthy",
            "connection_retries": redis_manager._connection_retries,
            "last_health_check": redis_manager._last_health_check
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
            "connection_retries": redis_manager._connection_retries
        }
