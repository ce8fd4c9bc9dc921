"""
Redis connection management
"""

from typing import Optional

from redis import Redis, ConnectionPool

from mfa_service.core.config import settings


class RedisClient:
    """Redis client wrapper for event publishing and health checks"""

    def __init__(self, url: Optional[str] = None):
        self.pool = ConnectionPool.from_url(
            url or settings.REDIS_URL,
            max_connections=settings.REDIS_POOL_SIZE,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            decode_responses=True
        )
        self.client = Redis(connection_pool=self.pool)

    def ping(self) -> bool:
        """Check connectivity"""
        return bool(self.client.ping())

    def publish(self, channel: str, message: str) -> int:
        """Publish message to channel"""
        return self.client.publish(channel, message)

    def close(self):
        """Close Redis connection"""
        self.client.close()
        self.pool.disconnect()


# Global Redis client instance
redis_client = RedisClient()


def get_redis() -> RedisClient:
    """Dependency function to get Redis client"""
    return redis_client
