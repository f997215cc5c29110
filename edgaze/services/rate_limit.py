import logging
import os
import time
import uuid
from typing import Callable, Optional

from fastapi import Request
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from edgaze.core.errors import RateLimited, UpstreamFailure

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
DEFAULT_MAX_REQUESTS = 60
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
BUG_REPORT_PREFIX = "edgaze:ratelimit:bug_report"


def client_ip(request: Request) -> str:
    cf = request.headers.get("cf-connecting-ip")
    if cf:
        return cf.split(",")[0].strip() or "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    real = request.headers.get("x-real-ip")
    if real:
        return real.strip() or "unknown"
    return "unknown"


def get_redis_url() -> str:
    return os.getenv("REDIS_URL", DEFAULT_REDIS_URL)


def create_redis(url: Optional[str] = None) -> aioredis.Redis:
    return aioredis.from_url(url or get_redis_url())


class RateLimiter:
    """Sliding-window limiter backed by one Redis sorted set per key.

    Every hit is recorded, including rejected ones, so a client that keeps
    hammering stays limited until it backs off for a full window.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS,
        prefix: str = BUG_REPORT_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.max_requests = int(max_requests)
        self.window_seconds = int(window_seconds)
        self.prefix = prefix
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str) -> int:
        """Record a request and return how many were already in the window."""
        now = self._clock()
        window_key = self._key(key)

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(window_key, 0, now - self.window_seconds)
        pipe.zcard(window_key)
        pipe.zadd(window_key, {f"{now}:{uuid.uuid4().hex}": now})
        pipe.expire(window_key, self.window_seconds)
        try:
            results = await pipe.execute()
        except RedisError as exc:
            raise UpstreamFailure.wrap(exc) from exc
        return int(results[1])

    async def check_and_record(self, key: str) -> None:
        seen = await self.hit(key)
        if seen >= self.max_requests:
            logger.warning(
                "Rate limit exceeded",
                extra={"limiter": self.prefix, "key": key, "count": seen + 1, "limit": self.max_requests},
            )
            raise RateLimited("Too many requests. Try again later.")

    async def reset(self, key: str) -> None:
        await self.redis.delete(self._key(key))


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def build_bug_report_limiter(redis: aioredis.Redis) -> RateLimiter:
    return RateLimiter(redis, _env_int("BUG_REPORT_RATE_LIMIT", DEFAULT_MAX_REQUESTS))


def get_bug_report_limiter(request: Request) -> RateLimiter:
    return request.app.state.bug_report_limiter
