"""
Unit tests for the compiled-set LRU cache and its configuration keys.
"""

from costume_switch.attribution.cache_keys import CacheKeyGenerator
from costume_switch.attribution.pattern_compiler import PatternCompiler
from costume_switch.cache import LRUCache


class TestLRUCache:

    def test_get_missing(self):
        assert LRUCache().get("nope") is None

    def test_least_recently_used_evicted(self):
        cache = LRUCache(max_size=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_stats_count_hits(self):
        cache = LRUCache(max_size=4)
        cache.put("a", 1)
        cache.get("a")
        cache.get("a")
        assert cache.stats() == {'size': 1, 'max_size': 4, 'total_hits': 2}

        cache.clear()
        assert len(cache) == 0


class TestCacheKeys:

    def test_blank_entries_do_not_change_key(self):
        first = CacheKeyGenerator.generate_heuristic_set_key(["Kotori"], ["said"], [], [])
        second = CacheKeyGenerator.generate_heuristic_set_key(["Kotori ", ""], [" said"], [], [])
        assert first == second
        assert first.startswith("heuristics:")

    def test_order_matters(self):
        first = CacheKeyGenerator.generate_heuristic_set_key(["Kotori", "Hanabi"], [], [], [])
        second = CacheKeyGenerator.generate_heuristic_set_key(["Hanabi", "Kotori"], [], [], [])
        assert first != second

    def test_compiler_reuses_sets(self, compiler):
        first = compiler.compile(["Kotori"], ["said"], ["nodded"], ["OOC:"])
        second = compiler.compile(["Kotori"], ["said"], ["nodded"], ["OOC:"])
        assert first is second

    def test_compilers_keep_separate_caches(self, compiler):
        first = compiler.compile(["Kotori"], ["said"], ["nodded"], ["OOC:"])
        second = PatternCompiler().compile(["Kotori"], ["said"], ["nodded"], ["OOC:"])
        assert first is not second
        assert first.signature == second.signature
