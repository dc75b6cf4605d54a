"""Best-effort overlap guard for the tick, backed by a Redis ``SET NX EX`` key.

The key expires on its own, so a crashed tick never blocks the next one for
longer than ``TICK_LOCK_TTL_SECONDS``. When Redis is unreachable the guard
lets the tick through: every stage is idempotent by its query conditions.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings
from src.ws_common.redis_client import get_redis

logger = logging.getLogger(__name__)

TICK_LOCK_KEY = "ws:tick:lock"


class TickGuard:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        ttl_seconds: int | None = None,
    ) -> None:
        self._redis_factory = redis_factory
        self._ttl = ttl_seconds or settings.TICK_LOCK_TTL_SECONDS

    async def acquire(self) -> str | None:
        """Return a holder token, "" when running unguarded, or None if another tick holds the key."""
        token = uuid.uuid4().hex
        try:
            redis = await self._redis_factory()
            acquired = await redis.set(TICK_LOCK_KEY, token, nx=True, ex=self._ttl)
        except (RedisError, OSError) as e:
            logger.warning("Tick guard unavailable, running unguarded: %s", e)
            return ""
        return token if acquired else None

    async def release(self, token: str) -> None:
        if not token:
            return
        try:
            redis = await self._redis_factory()
            if await redis.get(TICK_LOCK_KEY) == token:
                await redis.delete(TICK_LOCK_KEY)
        except (RedisError, OSError) as e:
            logger.warning("Tick guard release failed, key expires in %ds: %s", self._ttl, e)
