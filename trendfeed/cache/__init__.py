"""In-process result cache."""

from .memory_cache import MemoryCache, feed_cache_key

__all__ = ["MemoryCache", "feed_cache_key"]
