"""
In-memory cache store with LRU eviction and TTL expiry.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..types import CacheStore


@dataclass
class LruEntry:
    """LRU cache entry."""

    value: str
    size: int
    expires_at: Optional[float] = None


@dataclass
class MemoryCacheStats:
    """Memory cache statistics."""

    entries: int
    size_bytes: int
    max_size_bytes: int
    max_entries: int
    utilization_percent: float


class MemoryCacheStore(CacheStore):
    """
    In-memory cache store with LRU eviction.

    Safe for concurrent use on a single event loop: no operation awaits
    while it touches the entries.
    """

    def __init__(
        self,
        max_size: int = 100 * 1024 * 1024,  # 100MB default
        max_entries: int = 1000,
        max_entry_size: int = 5 * 1024 * 1024,  # 5MB default
        cleanup_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: Dict[str, LruEntry] = {}
        self._current_size: int = 0
        self._max_size = max_size
        self._max_entries = max_entries
        self._max_entry_size = max_entry_size
        self._cleanup_interval = cleanup_interval_seconds
        self._clock = clock
        self._cleanup_task: Optional[asyncio.Task] = None
        self._closed = False

    def _start_cleanup(self) -> None:
        if self._cleanup_task is None and not self._closed:
            self._cleanup_task = asyncio.ensure_future(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._cleanup_interval)
            self._cleanup()

    def _is_expired(self, entry: LruEntry) -> bool:
        return entry.expires_at is not None and entry.expires_at <= self._clock()

    def _cleanup(self) -> None:
        """Remove expired entries."""
        expired_keys = [key for key, entry in self._cache.items() if self._is_expired(entry)]
        for key in expired_keys:
            self._delete_entry(key)

    def _delete_entry(self, key: str) -> bool:
        entry = self._cache.pop(key, None)
        if entry is None:
            return False
        self._current_size -= entry.size
        return True

    def _evict_if_needed(self, required_size: int) -> None:
        # Evict by size
        while self._current_size + required_size > self._max_size and self._cache:
            self._delete_entry(next(iter(self._cache)))

        # Evict by entry count
        while len(self._cache) >= self._max_entries:
            self._delete_entry(next(iter(self._cache)))

    async def get(self, key: str) -> Optional[str]:
        """Get a cached value by key."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._delete_entry(key)
            return None

        # Move to end for LRU
        self._cache[key] = self._cache.pop(key)
        return entry.value

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        """
        Store a value.

        Returns:
            False when the value is larger than ``max_entry_size``
        """
        size = len(value.encode("utf-8"))
        if size > self._max_entry_size:
            return False

        self._delete_entry(key)
        self._evict_if_needed(size)

        expires_at = self._clock() + ttl if ttl is not None else None
        self._cache[key] = LruEntry(value=value, size=size, expires_at=expires_at)
        self._current_size += size

        if ttl is not None:
            self._start_cleanup()
        return True

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> bool:
        return self._delete_entry(key)

    async def clear(self) -> None:
        self._cache.clear()
        self._current_size = 0

    async def size(self) -> int:
        self._cleanup()
        return len(self._cache)

    async def keys(self) -> List[str]:
        self._cleanup()
        return list(self._cache.keys())

    async def close(self) -> None:
        """Stop the cleanup task and drop every entry."""
        self._closed = True
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        await self.clear()

    def get_stats(self) -> MemoryCacheStats:
        return MemoryCacheStats(
            entries=len(self._cache),
            size_bytes=self._current_size,
            max_size_bytes=self._max_size,
            max_entries=self._max_entries,
            utilization_percent=(self._current_size / self._max_size) * 100
            if self._max_size > 0
            else 0,
        )


def create_memory_cache_store(
    max_size: int = 100 * 1024 * 1024,
    max_entries: int = 1000,
    max_entry_size: int = 5 * 1024 * 1024,
    cleanup_interval_seconds: float = 60.0,
) -> MemoryCacheStore:
    """Create a memory cache store."""
    return MemoryCacheStore(
        max_size=max_size,
        max_entries=max_entries,
        max_entry_size=max_entry_size,
        cleanup_interval_seconds=cleanup_interval_seconds,
    )
