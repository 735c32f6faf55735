import logging
from typing import Dict, Optional, Any
from collections import OrderedDict
from dataclasses import dataclass

# Type aliases
CacheKey = str
CacheValue = Any


@dataclass
class CacheEntry:
    """Represents a single cache entry with metadata."""
    value: CacheValue
    hits: int = 0


class LRUCache:
    """
    Least Recently Used cache for in-process objects.

    Used to memoize compiled heuristic sets so that switching back and forth
    between profiles, or running the pattern tester, does not recompile the
    same regexes. Size is enforced with LRU eviction.
    """

    def __init__(self, max_size: int = 32):
        self.max_size = max_size
        self._cache: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self.logger = logging.getLogger(__name__)

    def get(self, key: CacheKey) -> Optional[CacheValue]:
        """Get value from cache, returns None if not found."""
        if key not in self._cache:
            return None

        entry = self._cache[key]

        # Move to end (most recently used)
        self._cache.move_to_end(key)
        entry.hits += 1

        self.logger.debug(f"Cache hit: {key[:8]}... (hits: {entry.hits})")
        return entry.value

    def put(self, key: CacheKey, value: CacheValue) -> None:
        """Put value in cache with LRU eviction."""
        if key in self._cache:
            del self._cache[key]

        self._cache[key] = CacheEntry(value=value)

        # Enforce size limit
        while len(self._cache) > self.max_size:
            oldest_key = next(iter(self._cache))
            del self._cache[oldest_key]
            self.logger.debug(f"Evicted cache entry: {oldest_key[:8]}...")

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._cache

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_hits = sum(entry.hits for entry in self._cache.values())
        return {
            'size': len(self._cache),
            'max_size': self.max_size,
            'total_hits': total_hits,
        }
