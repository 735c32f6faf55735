"""
In-process caching for the attribution engine.

- Bounded LRU cache for compiled heuristic sets
"""

from .lru_cache import LRUCache, CacheEntry

__all__ = [
    'LRUCache',
    'CacheEntry',
]
