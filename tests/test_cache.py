"""Tests for the TTL result cache."""

import time

import pytest

from recordbase.model_base import ResultCache, identity_key, query_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(enabled=True, ttl=10.0, sweep_interval=5.0, clock=clock)


class TestKeys:
    def test_identity_key(self):
        assert identity_key("donations", "abc") == "donations:id:abc"

    def test_query_key_depends_on_params(self):
        first = query_key("donations", "SELECT * FROM donations WHERE id = ?", [1])
        second = query_key("donations", "SELECT * FROM donations WHERE id = ?", [2])
        assert first.startswith("donations:query:")
        assert first != second
        assert first == query_key("donations", "SELECT * FROM donations WHERE id = ?", (1,))


class TestResultCache:
    def test_get_within_ttl(self, cache, clock):
        cache.set("donations:id:1", {"id": "1"})
        clock.advance(9.9)
        assert cache.get("donations:id:1") == {"id": "1"}

    def test_expired_on_read(self, cache, clock):
        cache.set("donations:id:1", {"id": "1"})
        clock.advance(10.0)
        assert cache.get("donations:id:1") is None
        assert len(cache) == 0

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("donations:id:old", 1)
        clock.advance(6)
        cache.set("donations:id:new", 2)
        clock.advance(5)

        assert cache.sweep() == 1
        assert cache.get("donations:id:new") == 2
        assert len(cache) == 1

    def test_invalidate_prefix(self, cache):
        cache.set("donations:id:1", 1)
        cache.set("donations:query:abc", 2)
        cache.set("donation_campaigns:id:1", 3)

        assert cache.invalidate("donations:") == 2
        assert cache.get("donation_campaigns:id:1") == 3
        assert cache.get("donations:id:1") is None

    def test_invalidate_all(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate() == 2
        assert len(cache) == 0

    def test_discard(self, cache):
        cache.set("a", 1)
        cache.discard("a")
        cache.discard("missing")
        assert cache.get("a") is None

    def test_disabled_cache_stores_nothing(self, clock):
        cache = ResultCache(enabled=False, clock=clock)
        cache.set("a", 1)
        assert cache.get("a") is None
        assert len(cache) == 0
        assert cache.invalidate("a") == 0

    def test_background_sweeper(self):
        cache = ResultCache(enabled=True, ttl=0.05, sweep_interval=0.02)
        cache.start_sweeper()
        try:
            cache.set("donations:id:1", 1)
            deadline = time.monotonic() + 2.0
            while len(cache) and time.monotonic() < deadline:
                time.sleep(0.01)
            assert len(cache) == 0
        finally:
            cache.close()

    def test_close_stops_sweeper_and_clears(self, cache):
        cache.start_sweeper()
        cache.set("a", 1)
        cache.close()
        assert len(cache) == 0
        assert cache._sweeper is None
