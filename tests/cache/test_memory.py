"""Tests for MemoryTier."""

from __future__ import annotations

import asyncio

import pytest

from tubegate.cache.memory import MemoryTier


@pytest.fixture
def tier(clock) -> MemoryTier:
    return MemoryTier(max_entries=3, default_ttl=60.0, clock=clock)


class TestGetSet:
    def test_get_returns_stored_value(self, tier: MemoryTier) -> None:
        tier.set("k", {"a": 1})
        assert tier.get("k") == {"a": 1}

    def test_get_missing_is_none(self, tier: MemoryTier) -> None:
        assert tier.get("nope") is None

    def test_value_readable_until_expiry(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v", ttl=10)
        clock.advance(9.999)
        assert tier.get("k") == "v"
        clock.advance(0.001)
        assert tier.get("k") is None

    def test_expired_entry_removed_on_read(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v", ttl=1)
        clock.advance(2)
        assert tier.size() == 1
        assert tier.get("k") is None
        assert tier.size() == 0
        assert tier.get("k") is None

    def test_zero_ttl_is_permanent(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v", ttl=0)
        clock.advance(10**9)
        assert tier.get("k") == "v"

    def test_permanent_flag_overrides_ttl(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v", ttl=1, permanent=True)
        clock.advance(100)
        assert tier.get("k") == "v"

    def test_default_ttl_applies(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v")
        clock.advance(59)
        assert tier.get("k") == "v"
        clock.advance(1)
        assert tier.get("k") is None

    def test_has_is_expiry_aware(self, tier: MemoryTier, clock) -> None:
        tier.set("k", "v", ttl=5)
        assert tier.has("k")
        clock.advance(5)
        assert not tier.has("k")
        assert tier.size() == 0


class TestCapacity:
    def test_first_inserted_key_evicted(self, tier: MemoryTier) -> None:
        for key in ("a", "b", "c", "d"):
            tier.set(key, key, ttl=3600)
        assert tier.size() == 3
        assert tier.get("a") is None
        assert [tier.get(k) for k in ("b", "c", "d")] == ["b", "c", "d"]

    def test_reads_do_not_reorder(self, tier: MemoryTier) -> None:
        for key in ("a", "b", "c"):
            tier.set(key, key)
        tier.get("a")
        tier.set("d", "d")
        assert tier.keys() == ["b", "c", "d"]

    def test_expired_entries_purged_before_eviction(self, tier: MemoryTier, clock) -> None:
        tier.set("a", "a", ttl=3600)
        tier.set("b", "b", ttl=1)
        tier.set("c", "c", ttl=3600)
        clock.advance(2)
        tier.set("d", "d")
        assert tier.keys() == ["a", "c", "d"]

    def test_evicts_exactly_one_per_set(self, clock) -> None:
        tier = MemoryTier(max_entries=2, clock=clock)
        tier.set("a", 1)
        tier.set("b", 2)
        tier.set("c", 3)
        assert tier.keys() == ["b", "c"]

    def test_overwrite_does_not_evict(self, tier: MemoryTier) -> None:
        for key in ("a", "b", "c"):
            tier.set(key, key)
        tier.set("a", "new")
        assert tier.keys() == ["a", "b", "c"]
        assert tier.get("a") == "new"

    def test_size_never_exceeds_max(self, tier: MemoryTier) -> None:
        for i in range(50):
            tier.set(f"k{i}", i)
            assert tier.size() <= tier.max_entries


class TestDeleteClear:
    def test_delete_reports_removal(self, tier: MemoryTier) -> None:
        tier.set("k", "v")
        assert tier.delete("k") is True
        assert tier.delete("k") is False

    def test_clear_drops_everything(self, tier: MemoryTier) -> None:
        tier.set("a", 1, ttl=0)
        tier.set("b", 2)
        tier.clear()
        assert tier.size() == 0

    def test_cleanup_expired_counts(self, tier: MemoryTier, clock) -> None:
        tier.set("a", 1, ttl=1)
        tier.set("b", 2, ttl=1)
        tier.set("c", 3, ttl=0)
        clock.advance(5)
        assert tier.cleanup_expired() == 2
        assert tier.keys() == ["c"]


class TestStats:
    def test_counters(self, tier: MemoryTier) -> None:
        tier.set("a", 1)
        tier.get("a")
        tier.get("a")
        tier.get("missing")
        tier.delete("a")

        stats = tier.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["sets"] == 1
        assert stats["deletes"] == 1
        assert stats["size"] == 0
        assert stats["hit_rate"] == pytest.approx(66.67)

    def test_hit_rate_zero_without_lookups(self, tier: MemoryTier) -> None:
        assert tier.stats()["hit_rate"] == 0.0


class TestSweep:
    async def test_background_sweep_removes_expired(self) -> None:
        tier = MemoryTier(default_ttl=0.01, sweep_interval=0.02)
        tier.set("k", "v")
        tier.start()
        try:
            await asyncio.sleep(0.1)
            assert tier.size() == 0
        finally:
            await tier.aclose()

    async def test_aclose_is_idempotent(self, tier: MemoryTier) -> None:
        tier.start()
        await tier.aclose()
        await tier.aclose()
