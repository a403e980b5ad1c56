"""
Unit tests for the Memory Cache Store.

Time is driven by the fake clock fixture, so expiry is tested without sleeping.
"""

import asyncio
from decimal import Decimal

import pytest

from fintrack.domain.exceptions import InvalidTTLException
from fintrack.domain.finance.entities import Category
from fintrack.infrastructure.cache.memory_store import MemoryCacheStore


class TestMemoryCacheStoreTTL:
    """Test lazy expiry."""

    def test_get_returns_value_before_ttl(self, store, clock):
        store.set("k", {"a": 1}, 1000)
        clock.advance(999)
        assert store.get("k") == {"a": 1}

    def test_entry_live_at_exact_ttl(self, store, clock):
        """Test an entry is still live when its age equals its TTL."""
        store.set("k", "v", 1000)
        clock.advance(1000)
        assert store.get("k") == "v"

    def test_get_after_ttl_returns_none_and_removes(self, store, clock):
        store.set("k", "v", 1000)
        clock.advance(1001)
        assert store.get("k") is None
        assert len(store) == 0
        assert store.stats().expired_evictions == 1

    def test_get_default(self, store):
        sentinel = object()
        assert store.get("missing", sentinel) is sentinel

    def test_overwrite_resets_timestamp(self, store, clock):
        store.set("k", "old", 1000)
        clock.advance(800)
        store.set("k", "new", 1000)
        clock.advance(800)
        assert store.get("k") == "new"

    def test_contains_honors_expiry(self, store, clock):
        store.set("k", "v", 10)
        assert store.contains("k")
        clock.advance(11)
        assert not store.contains("k")

    @pytest.mark.parametrize("ttl_ms", [0, -5, None, False])
    def test_invalid_ttl_rejected(self, store, ttl_ms):
        with pytest.raises(InvalidTTLException):
            store.set("k", "v", ttl_ms)
        assert len(store) == 0

    def test_falsy_values_are_cached(self, store):
        """Test empty containers are live entries, not misses."""
        store.set("k", [], 1000)
        assert store.get("k", "default") == []


class TestMemoryCacheStoreClear:
    """Test pattern clearing."""

    def test_clear_pattern_removes_only_matching(self, store):
        store.set("v1-movements-u1:personal:all", 1, 1000)
        store.set("v1-movements-u1:personal:limit:20", 2, 1000)
        store.set("v1-categories-u1:personal:all", 3, 1000)

        removed = store.clear("-movements-u1:personal:")

        assert removed == 2
        assert store.get("v1-categories-u1:personal:all") == 3

    def test_clear_without_pattern_removes_everything(self, store):
        store.set("a", 1, 1000)
        store.set("b", 2, 1000)
        assert store.clear() == 2
        assert len(store) == 0

    def test_clear_unknown_pattern_is_noop(self, store):
        store.set("a", 1, 1000)
        assert store.clear("zzz") == 0
        assert len(store) == 1

    def test_delete(self, store):
        store.set("a", 1, 1000)
        assert store.delete("a") is True
        assert store.delete("a") is False


class TestMemoryCacheStoreStats:
    """Test observational statistics."""

    def test_stats_snapshot(self, store):
        store.set("a", Category(id="c1", name="Food"), 1000)
        store.set("b", Decimal("10.50"), 1000)
        store.get("a")
        store.get("missing")

        stats = store.stats()

        assert stats.size == 2
        assert set(stats.keys) == {"a", "b"}
        assert stats.approximate_memory_bytes > 0
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 50.0

    def test_sweep_removes_expired_only(self, store, clock):
        store.set("short", 1, 100)
        store.set("long", 2, 10_000)
        clock.advance(500)

        assert store.sweep() == 1
        assert store.stats().keys == ["long"]


class TestMemoryCacheStoreAutoCleanup:
    """Test the periodic sweep task."""

    @pytest.mark.asyncio
    async def test_auto_cleanup_sweeps_periodically(self, clock):
        store = MemoryCacheStore(clock=clock)
        store.set("k", "v", 10)
        clock.advance(100)

        store.start_auto_cleanup(interval_seconds=0.01)
        assert store.auto_cleanup_running
        await asyncio.sleep(0.05)

        assert len(store) == 0
        await store.stop_auto_cleanup()
        assert not store.auto_cleanup_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, store):
        await store.stop_auto_cleanup()
        assert not store.auto_cleanup_running
