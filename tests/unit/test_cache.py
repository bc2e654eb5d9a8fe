"""Unit tests for the TTL cache and client-side pagination."""
from __future__ import annotations

from monarch_core.cache import TTLCache, paginate


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_miss_returns_none(self) -> None:
        cache: TTLCache[str] = TTLCache(120.0)
        assert cache.get("missing") is None

    def test_hit_within_ttl(self) -> None:
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(120.0, clock)
        cache.set("k", "v")
        clock.now += 119.9
        assert cache.get("k") == "v"

    def test_stale_at_ttl(self) -> None:
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(120.0, clock)
        cache.set("k", "v")
        clock.now += 120.0
        assert cache.get("k") is None

    def test_set_refreshes_timestamp(self) -> None:
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(60.0, clock)
        cache.set("k", "old")
        clock.now += 100
        cache.set("k", "new")
        assert cache.get("k") == "new"

    def test_empty_cache_is_falsy_but_usable(self) -> None:
        cache: TTLCache[int] = TTLCache(1.0)
        assert len(cache) == 0
        cache.set(("a", 1), 5)
        assert len(cache) == 1


class TestPaginate:
    def test_page_three_of_cached_list(self) -> None:
        items = list(range(1000))
        page = paginate(items, skip=16, page_size=8)
        assert page.items == tuple(items[16:24])
        assert page.total_count == 1000

    def test_total_independent_of_page(self) -> None:
        items = list(range(1000))
        assert paginate(items, 0, 8).total_count == 1000
        assert paginate(items, 992, 8).total_count == 1000

    def test_last_partial_page(self) -> None:
        page = paginate(list(range(10)), skip=8, page_size=8)
        assert page.items == (8, 9)

    def test_skip_past_end(self) -> None:
        page = paginate([1, 2, 3], skip=10, page_size=5)
        assert page.items == ()
        assert page.total_count == 3

    def test_is_exact_flag(self) -> None:
        assert paginate([1], 0, 1).is_exact is True
        assert paginate([1], 0, 1, is_exact=False).is_exact is False
