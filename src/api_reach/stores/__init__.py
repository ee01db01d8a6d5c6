"""
Cache store implementations
"""
from .memory import MemoryCacheStats, MemoryCacheStore, create_memory_cache_store
from .redis import RedisCacheStore, RedisClientProtocol, create_redis_cache_store

__all__ = [
    "MemoryCacheStore",
    "MemoryCacheStats",
    "create_memory_cache_store",
    "RedisCacheStore",
    "RedisClientProtocol",
    "create_redis_cache_store",
]
