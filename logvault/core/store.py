"""Key-value store adapter for alarm records.

``open_redis`` builds the one ``redis.asyncio`` connection shared by the
syslog pipeline and the web API. ``AlarmStore`` is a narrow async
interface over that client. Every method is a single round trip; there is
no batching, caching or retry, and keys and values are opaque strings.
Redis errors propagate to the caller, which decides whether to log and drop
or answer with an error.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import redis.asyncio as aioredis

from logvault.core.config import Settings

logger = logging.getLogger(__name__)

ALARM_PREFIX = "alarm:"

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class KeyNotFoundError(KeyError):
    """Raised by ``AlarmStore.get`` when the key does not exist."""


def open_redis(settings: Settings) -> aioredis.Redis:
    """Return a client for ``settings.redis_url`` that decodes replies to str."""
    client: aioredis.Redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    return client


async def redis_reachable(client: aioredis.Redis) -> bool:
    """PING the server; False (with the error logged) when it does not answer."""
    try:
        return bool(await client.ping())
    except (aioredis.RedisError, ConnectionError, OSError) as exc:
        logger.error("Redis PING failed: %s", exc)
        return False


def escape_pattern(prefix: str) -> str:
    """Escape Redis glob metacharacters so ``prefix`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", prefix)


class AlarmStore:
    """Async key-value adapter.

    Args:
        redis: An async Redis client (``redis.asyncio.Redis``) created with
            ``decode_responses=True``.
    """

    def __init__(self, redis: Any) -> None:
        self._redis = redis

    @property
    def client(self) -> Any:
        return self._redis

    async def get(self, key: str) -> str:
        value = await self._redis.get(key)
        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(key, value)

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys. Returns the number of keys removed."""
        if not keys:
            return 0
        removed: int = await self._redis.delete(*keys)
        return removed

    async def list_by_prefix(self, prefix: str) -> list[str]:
        keys = await self._redis.keys(f"{escape_pattern(prefix)}*")
        return list(keys)

    async def list_all(self) -> list[str]:
        keys = await self._redis.keys("*")
        return list(keys)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())
