"""
Redis cache store implementation
Suitable for sharing cached responses between processes
"""
import math
from typing import Any, List, Optional, Protocol

from ..types import CacheStore


class RedisClientProtocol(Protocol):
    """Protocol for Redis client (compatible with redis-py async)"""

    async def get(self, name: str) -> Any:
        ...

    async def set(self, name: str, value: Any, px: Optional[int] = None) -> Any:
        ...

    async def delete(self, *names: str) -> int:
        ...

    async def keys(self, pattern: str = "*") -> List[Any]:
        ...

    async def close(self) -> None:
        ...


class RedisCacheStore(CacheStore):
    """
    Redis implementation of CacheStore.
    Expiry is delegated to Redis (PX).
    """

    def __init__(self, client: RedisClientProtocol, key_prefix: str = "api_reach:") -> None:
        """
        Create a new RedisCacheStore.

        Args:
            client: Redis client (async redis-py instance)
            key_prefix: Prefix for all keys. Default: 'api_reach:'
        """
        self._client = client
        self._key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        value = await self._client.get(self._get_key(key))
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        if ttl is not None and ttl <= 0:
            return False
        px = int(math.ceil(ttl * 1000)) if ttl is not None else None
        result = await self._client.set(self._get_key(key), value, px=px)
        return bool(result)

    async def delete(self, key: str) -> bool:
        return await self._client.delete(self._get_key(key)) > 0

    async def clear(self) -> None:
        """Delete every key under the prefix."""
        keys = await self._client.keys(f"{self._key_prefix}*")
        if keys:
            await self._client.delete(*keys)

    async def close(self) -> None:
        await self._client.close()


def create_redis_cache_store(
    client: RedisClientProtocol, key_prefix: str = "api_reach:"
) -> RedisCacheStore:
    """
    Create a new RedisCacheStore instance.

    Args:
        client: Redis client (async redis-py instance)
        key_prefix: Prefix for all keys

    Returns:
        RedisCacheStore instance
    """
    return RedisCacheStore(client, key_prefix)
