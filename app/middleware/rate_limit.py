"""
Rate limiting for processing endpoints (sliding window, in-memory or Redis)
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from app.config import settings
from app.database.redis import get_redis
from app.errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime


class MemoryBackend:
    """
    Per-process timestamps per key. Not shared between instances.

    Keys whose window has passed are swept at most once per window, so
    identifiers that stop sending requests do not accumulate.
    """

    def __init__(self):
        self._hits: Dict[str, List[float]] = {}
        self._last_sweep = 0.0

    @property
    def key_count(self) -> int:
        return len(self._hits)

    def _sweep(self, window_start: float) -> None:
        expired = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in expired:
            self._hits.pop(key, None)
        if expired:
            logger.debug(f"Rate limiter swept {len(expired)} idle keys")

    async def hit(self, key: str, limit: int, window_seconds: int, now: float):
        window_start = now - window_seconds
        if now - self._last_sweep >= window_seconds:
            self._sweep(window_start)
            self._last_sweep = now

        hits = [ts for ts in self._hits.get(key, []) if ts > window_start]

        if len(hits) >= limit:
            self._hits[key] = hits
            return False, len(hits), hits[0] + window_seconds

        hits.append(now)
        self._hits[key] = hits
        return True, len(hits), hits[0] + window_seconds

    def reset(self):
        self._hits.clear()
        self._last_sweep = 0.0


class RedisBackend:
    """
    Sorted set per key, scored by request time.
    """

    def __init__(self, redis_factory, prefix: str):
        self._redis_factory = redis_factory
        self._prefix = prefix

    async def hit(self, key: str, limit: int, window_seconds: int, now: float):
        redis = await self._redis_factory()
        full_key = f"{self._prefix}{key}"
        window_start = now - window_seconds

        await redis.zremrangebyscore(full_key, 0, window_start)
        count = await redis.zcard(full_key)

        if count >= limit:
            oldest = await redis.zrange(full_key, 0, 0, withscores=True)
            oldest_ts = oldest[0][1] if oldest else now
            return False, count, oldest_ts + window_seconds

        await redis.zadd(full_key, {f"{now}-{uuid4().hex[:8]}": now})
        await redis.expire(full_key, window_seconds)
        return True, count + 1, now + window_seconds


class RateLimiter:
    """
    Fixed-size sliding window limiter for one class of operations.

    Best effort only: the memory backend is per process, and backend errors
    fail open.
    """

    def __init__(self, name: str, limit: int, window_seconds: int, backend=None):
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self.backend = backend if backend is not None else MemoryBackend()

    async def check(self, identifier: str, limit: Optional[int] = None) -> RateLimitResult:
        """
        Records one request for ``identifier``. ``limit`` overrides the
        limiter's default, for identifiers that carry their own quota.
        """
        limit = self.limit if limit is None else limit
        now = time.time()
        key = f"{self.name}:{identifier}"

        try:
            allowed, count, reset_ts = await self.backend.hit(
                key, limit, self.window_seconds, now
            )
        except Exception as e:
            logger.error(f"Error checking rate limit ({self.name}): {e}")
            return RateLimitResult(
                allowed=True,
                remaining=limit,
                limit=limit,
                reset_at=datetime.fromtimestamp(now + self.window_seconds, tz=timezone.utc),
            )

        if not allowed:
            logger.warning(f"Rate limit exceeded for key: {key} ({count}/{limit})")

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, limit - count),
            limit=limit,
            reset_at=datetime.fromtimestamp(reset_ts, tz=timezone.utc),
        )

    async def enforce(self, identifier: str, limit: Optional[int] = None) -> RateLimitResult:
        """Like check(), but raises RateLimitError when the request is denied."""
        result = await self.check(identifier, limit)
        if not result.allowed:
            raise RateLimitError(reset_at=result.reset_at, limit=result.limit)
        return result


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_at.isoformat(),
    }


def get_client_identifier(request: Request, user_id: Optional[UUID] = None) -> str:
    """
    Builds the rate limiting identifier from the user id or the client IP.
    """
    if user_id:
        return f"user:{user_id}"

    # Behind a proxy the first X-Forwarded-For hop is the client
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return f"ip:{real_ip.strip()}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def build_rate_limiter(name: str, limit: int, window_seconds: int) -> RateLimiter:
    """Creates a limiter on the backend selected by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        backend = RedisBackend(get_redis, settings.RATE_LIMIT_PREFIX)
    else:
        backend = MemoryBackend()
    logger.info(f"Rate limiter '{name}': {limit} requests / {window_seconds}s ({settings.RATE_LIMIT_BACKEND})")
    return RateLimiter(name, limit, window_seconds, backend=backend)


# Per-IP limits for lightweight user endpoints
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=[settings.USER_RATE_LIMIT],
)
