"""Bounded in-process cache with TTL expiry and LRU eviction."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    data: T
    expires_at: float
    last_accessed_at: float


class MemoryCache(Generic[T]):
    """Process-local key/value cache.

    Expired entries are treated as absent and evicted on read; a background
    sweeper purges them independently of reads. Inserting a new key at capacity
    evicts the least-recently-accessed entry.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if now > entry.expires_at:
            del self._entries[key]
            return None

        entry.last_accessed_at = now
        return entry.data

    def set(self, key: str, data: T) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()

        now = self._clock()
        self._entries[key] = CacheEntry(
            data=data,
            expires_at=now + self.ttl_seconds,
            last_accessed_at=now,
        )

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key containing the substring, return count dropped."""
        doomed = [k for k in self._entries if pattern in k]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def sweep(self) -> int:
        """Remove all expired entries, return count removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now > e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].last_accessed_at)
        del self._entries[oldest]
        logger.debug("cache_evicted", key=oldest)

    # --- background sweep ---

    def start_sweeper(self, interval_seconds: float = 60.0) -> asyncio.Task:
        """Start the periodic sweep on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_loop(interval_seconds), name="memory-cache-sweeper"
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug("cache_swept", removed=removed, remaining=len(self._entries))


def feed_cache_key(source_ids: Iterable[str], time_range: Any, mode: Any) -> str:
    """Composite key: sorted source ids, time range and feed mode."""
    time_range = getattr(time_range, "value", time_range)
    mode = getattr(mode, "value", mode)
    return f"feed:{','.join(sorted(source_ids))}:{time_range}:{mode}"
