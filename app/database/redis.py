"""
Redis connection used by the rate limiter backend
"""
import logging
import redis.asyncio as redis
from app.config import settings

logger = logging.getLogger(__name__)

redis_client = None


async def get_redis():
    """
    Returns the shared Redis client, creating it on first use.
    """
    global redis_client

    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )
        logger.info(f"Redis connection established: {settings.REDIS_URL}")

    return redis_client


async def close_redis():
    """Closes the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.close()
        redis_client = None
        logger.info("Redis connection closed")
