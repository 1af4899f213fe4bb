"""
Tests for knowhub/pipeline/cache.py
QueryCache TTL + LRU behaviour and cache key normalization.
"""

import pytest

from knowhub.pipeline.cache import QueryCache, build_cache_key
from knowhub.schemas.search import SearchFilters


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestQueryCacheTTL:
    """Entries live exactly until their TTL elapses."""

    def test_get_after_set_returns_value(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, max_size=10, clock=clock)
        cache.set("k", {"answer": 1})
        clock.advance(59.9)
        assert cache.get("k") == {"answer": 1}

    def test_expired_entry_is_absent(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, max_size=10, clock=clock)
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k") is None
        assert "k" not in cache
        assert len(cache) == 0

    def test_missing_key_counts_a_miss(self):
        cache = QueryCache(ttl_seconds=60, max_size=10)
        assert cache.get("nope") is None
        assert cache.stats()["misses"] == 1

    def test_set_overwrites_and_restarts_ttl(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, max_size=10, clock=clock)
        cache.set("k", "old")
        clock.advance(50)
        cache.set("k", "new")
        clock.advance(50)
        assert cache.get("k") == "new"


class TestQueryCacheLRU:
    """Capacity bound with least-recently-used eviction."""

    def test_size_never_exceeds_capacity(self):
        cache = QueryCache(ttl_seconds=60, max_size=3)
        for i in range(10):
            cache.set(f"k{i}", i)
        assert len(cache) == 3
        assert cache.stats()["evictions"] == 7

    def test_evicts_least_recently_used_after_recency_refresh(self):
        cache = QueryCache(ttl_seconds=60, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1  # a is now most recent
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            QueryCache(max_size=0)

    def test_stats_track_hits(self):
        cache = QueryCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        stats = cache.stats()
        assert stats["hits"] == 2
        assert stats["size"] == 1


class TestBuildCacheKey:
    """Semantically identical requests share a key."""

    def test_whitespace_and_case_are_normalized(self):
        a = build_cache_key("  What is   OC4IDS? ", None, 10, 0)
        b = build_cache_key("what is oc4ids?", None, 10, 0)
        assert a == b

    def test_filter_field_order_does_not_matter(self):
        a = build_cache_key("q", SearchFilters(topic="Guide", country="Uganda"), 10, 0)
        b = build_cache_key("q", SearchFilters(country="Uganda", topic="Guide"), 10, 0)
        assert a == b

    def test_absent_filters_equal_no_filters(self):
        assert build_cache_key("q", SearchFilters(), 10, 0) == build_cache_key("q", None, 10, 0)

    def test_pagination_changes_key(self):
        assert build_cache_key("q", None, 10, 0) != build_cache_key("q", None, 10, 10)
        assert build_cache_key("q", None, 10, 0) != build_cache_key("q", None, 20, 0)

    def test_filter_values_change_key(self):
        a = build_cache_key("q", SearchFilters(year=2021), 10, 0)
        b = build_cache_key("q", SearchFilters(year=2022), 10, 0)
        assert a != b

    def test_sort_mode_changes_key(self):
        assert build_cache_key("q", None, 10, 0) == build_cache_key("q", None, 10, 0, "relevance")
        assert build_cache_key("q", None, 10, 0, "relevance") != build_cache_key("q", None, 10, 0, "date")

    def test_year_range_changes_key(self):
        a = build_cache_key("q", SearchFilters(year_from=2020), 10, 0)
        b = build_cache_key("q", SearchFilters(year_to=2020), 10, 0)
        assert a != b

    def test_key_is_md5_hex(self):
        key = build_cache_key("q", None, 10, 0)
        assert len(key) == 32
        int(key, 16)
