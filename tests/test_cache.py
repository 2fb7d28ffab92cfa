"""
Tests for the per-provider TTL cache.
"""

from __future__ import annotations

from backend_riskscope.ingestion.cache import DEFAULT_CACHE_TTL_SEC, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_default_ttl_is_ten_seconds():
    assert DEFAULT_CACHE_TTL_SEC == 10.0
    assert TTLCache().ttl_sec == 10.0


def test_get_returns_value_until_expiry():
    clock = FakeClock()
    cache = TTLCache(10.0, clock=clock)
    cache.set("alice", 1)
    clock.now += 9.9
    assert cache.get("alice") == 1
    clock.now += 0.1
    assert cache.get("alice") is None
    assert len(cache) == 0


def test_last_write_wins_and_refreshes_age():
    clock = FakeClock()
    cache = TTLCache(5.0, clock=clock)
    cache.set("k", "old")
    clock.now += 4
    cache.set("k", "new")
    clock.now += 4
    assert cache.get("k") == "new"


def test_clear_one_key_or_all():
    cache = TTLCache(60.0)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.clear()
    assert len(cache) == 0


def test_zero_ttl_never_serves():
    cache = TTLCache(0)
    cache.set("a", 1)
    assert cache.get("a") is None


def test_caches_are_independent():
    first, second = TTLCache(), TTLCache()
    first.set("a", 1)
    assert second.get("a") is None
