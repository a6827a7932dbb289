"""Two-tier cache coordinator with per-content-class policy."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from tubegate.cache.durable import DurableTier
from tubegate.cache.memory import MemoryTier
from tubegate.cache.policy import FALLBACK_TTL, POLICIES, ClassPolicy, class_of, make_key
from tubegate.config import Settings
from tubegate.shared.enums import ContentClass
from tubegate.shared.models import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_DURABLE_CLEANUP_INTERVAL = 3600.0


def _tier_ttl(ttl: float | None) -> float:
    """Translate a policy TTL (``None`` = permanent) into the tiers' ``0`` marker."""
    return 0 if ttl is None else ttl


class CacheCoordinator:
    """Merges the memory and durable tiers into one logical cache.

    Reads go memory first, then (for durable classes) disk, backfilling the
    memory tier on a disk hit. Writes always reach memory and reach disk iff
    the class is durable. There is no lock across tiers: concurrent
    operations on one key are last-writer-wins.

    A value written with :meth:`set` is readable until its TTL elapses and
    never afterwards, whichever tier serves it. Backfilled entries therefore
    keep the durable entry's remaining lifetime rather than a fresh one.
    """

    def __init__(
        self,
        memory: MemoryTier,
        durable: DurableTier,
        *,
        durable_cleanup_interval: float = _DEFAULT_DURABLE_CLEANUP_INTERVAL,
    ) -> None:
        self.memory = memory
        self.durable = durable
        self._durable_cleanup_interval = durable_cleanup_interval
        self._cleanup_task: asyncio.Task[None] | None = None
        self._total_gets = 0
        self._total_sets = 0
        self._memory_hits = 0
        self._durable_hits = 0
        self._misses = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheCoordinator:
        memory = MemoryTier(
            max_entries=settings.memory_max_entries,
            sweep_interval=settings.memory_sweep_interval,
        )
        durable = DurableTier(settings.cache_dir)
        return cls(memory, durable, durable_cleanup_interval=settings.durable_cleanup_interval)

    # ── Core API ───────────────────────────────────────────────

    async def get(self, key: str, content_class: ContentClass | None = None) -> Any | None:
        """Return the cached value for ``key`` or ``None``."""
        self._total_gets += 1
        value = self.memory.get(key)
        if value is not None:
            self._memory_hits += 1
            return value

        cls = content_class or class_of(key)
        policy = POLICIES.get(cls)
        if policy is not None and policy.durable:
            entry = await self.durable.get_entry(key)
            if entry is not None:
                self._durable_hits += 1
                self._backfill(entry, policy)
                return entry.value

        self._misses += 1
        return None

    async def set(
        self,
        key: str,
        value: Any,
        content_class: ContentClass | None = None,
        ttl: float | None = None,
    ) -> None:
        """Write ``value`` through to every tier the class uses.

        Args:
            key: Namespaced cache key.
            value: JSON-compatible payload.
            content_class: Explicit class; inferred from ``key`` when omitted.
            ttl: Override in seconds (``0`` = permanent). Defaults to the
                class TTL, then to ``FALLBACK_TTL``.
        """
        self._total_sets += 1
        cls = content_class or class_of(key)
        policy = POLICIES.get(cls)
        tier_ttl = self._resolve_ttl(policy, ttl)

        self.memory.set(key, value, tier_ttl)
        if policy is not None and policy.durable:
            await self.durable.set(key, value, tier_ttl)

    async def delete(self, key: str, content_class: ContentClass | None = None) -> bool:
        """Delete ``key`` from both tiers.

        The durable tier is always attempted, even for memory-only classes,
        so that no stale file can outlive the delete.
        """
        removed_memory = self.memory.delete(key)
        removed_durable = await self.durable.delete(key)
        return removed_memory or removed_durable

    async def clear(self) -> None:
        self.memory.clear()
        await self.durable.clear()

    async def clear_by_class(self, content_class: ContentClass) -> int:
        """Drop every memory entry in ``content_class``'s namespace.

        The durable tier has no per-class index, so for durable classes this
        only triggers an expired-entry sweep there.

        Returns:
            Number of memory entries removed plus durable files swept.
        """
        prefix = make_key(content_class, "")
        removed = 0
        for key in self.memory.keys():
            if key.startswith(prefix) and self.memory.delete(key):
                removed += 1
        if POLICIES[content_class].durable:
            removed += await self.durable.cleanup_expired()
        logger.info("cleared %d entries for class %s", removed, content_class.value)
        return removed

    # ── Sync API ───────────────────────────────────────────────

    def get_sync(self, key: str, content_class: ContentClass | None = None) -> Any | None:
        """Blocking variant of :meth:`get` for startup and shutdown paths."""
        self._total_gets += 1
        value = self.memory.get(key)
        if value is not None:
            self._memory_hits += 1
            return value

        policy = POLICIES.get(content_class or class_of(key))
        if policy is not None and policy.durable:
            entry = self.durable.get_entry_sync(key)
            if entry is not None:
                self._durable_hits += 1
                self._backfill(entry, policy)
                return entry.value

        self._misses += 1
        return None

    def set_sync(
        self,
        key: str,
        value: Any,
        content_class: ContentClass | None = None,
        ttl: float | None = None,
    ) -> None:
        self._total_sets += 1
        policy = POLICIES.get(content_class or class_of(key))
        tier_ttl = self._resolve_ttl(policy, ttl)
        self.memory.set(key, value, tier_ttl)
        if policy is not None and policy.durable:
            self.durable.set_sync(key, value, tier_ttl)

    # ── Namespaced helpers ─────────────────────────────────────

    async def get_search_results(self, query: str) -> Any | None:
        return await self.get(make_key(ContentClass.SEARCH, query), ContentClass.SEARCH)

    async def cache_search_results(self, query: str, results: Any) -> None:
        await self.set(make_key(ContentClass.SEARCH, query), results, ContentClass.SEARCH)

    async def get_video_info(self, video_id: str) -> Any | None:
        return await self.get(make_key(ContentClass.VIDEO_METADATA, video_id), ContentClass.VIDEO_METADATA)

    async def cache_video_info(self, video_id: str, info: Any) -> None:
        await self.set(make_key(ContentClass.VIDEO_METADATA, video_id), info, ContentClass.VIDEO_METADATA)

    async def get_channel_info(self, channel_id: str) -> Any | None:
        return await self.get(make_key(ContentClass.CHANNEL_METADATA, channel_id), ContentClass.CHANNEL_METADATA)

    async def cache_channel_info(self, channel_id: str, info: Any) -> None:
        await self.set(make_key(ContentClass.CHANNEL_METADATA, channel_id), info, ContentClass.CHANNEL_METADATA)

    async def get_lyrics(self, lyrics_id: str) -> Any | None:
        return await self.get(make_key(ContentClass.LYRICS, lyrics_id), ContentClass.LYRICS)

    async def cache_lyrics(self, lyrics_id: str, lyrics: Any) -> None:
        await self.set(make_key(ContentClass.LYRICS, lyrics_id), lyrics, ContentClass.LYRICS)

    # ── Lifecycle & stats ──────────────────────────────────────

    def start(self) -> None:
        """Start the memory sweep and the periodic durable cleanup."""
        self.memory.start()
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._durable_cleanup_loop(), name="durable-cleanup")

    async def aclose(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        await self.memory.aclose()

    def stats(self) -> dict[str, Any]:
        total_hits = self._memory_hits + self._durable_hits
        return {
            "coordinator": {
                "total_gets": self._total_gets,
                "total_sets": self._total_sets,
                "memory_hits": self._memory_hits,
                "durable_hits": self._durable_hits,
                "misses": self._misses,
                "total_hits": total_hits,
                "hit_rate": round(total_hits / self._total_gets * 100, 2) if self._total_gets else 0.0,
            },
            "memory": self.memory.stats(),
            "durable": self.durable.stats(),
        }

    # ── Internals ──────────────────────────────────────────────

    @staticmethod
    def _resolve_ttl(policy: ClassPolicy | None, override: float | None) -> float:
        if override is not None:
            return override
        if policy is not None:
            return _tier_ttl(policy.ttl)
        return FALLBACK_TTL

    def _backfill(self, entry: CacheEntry, policy: ClassPolicy) -> None:
        if entry.expires_at is None:
            ttl = _tier_ttl(policy.ttl)
        else:
            ttl = entry.expires_at - self.memory.now()
            if policy.ttl is not None:
                ttl = min(ttl, policy.ttl)
            if ttl <= 0:
                return
        self.memory.set(entry.key, entry.value, ttl)

    async def _durable_cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._durable_cleanup_interval)
            await self.durable.cleanup_expired()
