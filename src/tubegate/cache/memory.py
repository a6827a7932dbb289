"""Capacity-bounded, TTL-aware in-process cache tier."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from tubegate.shared.models import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_TTL = 5 * 60.0
_DEFAULT_MAX_ENTRIES = 1000
_DEFAULT_SWEEP_INTERVAL = 60.0


class MemoryTier:
    """Insertion-ordered key/value store with lazy and timed expiry.

    Expired entries are removed when read and by a background sweep. When a
    write finds the tier full, expired entries are purged first and, if the
    tier is still full, the single oldest-inserted entry is evicted (FIFO:
    reads never reorder entries).

    Operations never raise; there is no I/O behind this tier.
    """

    def __init__(
        self,
        *,
        max_entries: int = _DEFAULT_MAX_ENTRIES,
        default_ttl: float | None = _DEFAULT_TTL,
        sweep_interval: float = _DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._max_entries = max(1, max_entries)
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._sweeper: asyncio.Task[None] | None = None
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or ``None``.

        An expired entry is deleted before reporting the miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        """Expiry-aware membership test; does not touch hit/miss counters."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def set(self, key: str, value: Any, ttl: float | None = None, *, permanent: bool = False) -> None:
        """Store ``value`` under ``key``.

        Args:
            key: Cache key.
            value: Payload to store.
            ttl: Lifetime in seconds. ``None`` uses the tier default and
                ``0`` means the entry never expires.
            permanent: Force a non-expiring entry regardless of ``ttl``.
        """
        if permanent:
            ttl = 0
        elif ttl is None:
            ttl = self._default_ttl
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._purge_expired(now)
                if len(self._entries) >= self._max_entries:
                    oldest = next(iter(self._entries))
                    del self._entries[oldest]
                    logger.debug("memory tier full, evicted %s", oldest)
            # Overwriting keeps the key's original insertion position.
            self._entries[key] = CacheEntry.build(key, value, ttl, now)
            self._sets += 1

    def delete(self, key: str) -> bool:
        """Remove ``key``; returns True iff an entry was actually removed."""
        with self._lock:
            if self._entries.pop(key, None) is None:
                return False
            self._deletes += 1
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Snapshot of the current keys in insertion order."""
        with self._lock:
            return list(self._entries)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def now(self) -> float:
        """Current time on the clock this tier expires entries by."""
        return self._clock()

    def cleanup_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            return self._purge_expired(self._clock())

    def stats(self) -> dict[str, Any]:
        """Point-in-time counters plus current size and hit rate (percent)."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "sets": self._sets,
                "deletes": self._deletes,
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
            }

    # ── Background sweep ───────────────────────────────────────

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="memory-tier-sweep")

    async def aclose(self) -> None:
        """Stop the sweep task and drop all entries."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = self.cleanup_expired()
            if removed:
                logger.debug("memory sweep removed %d expired entries", removed)

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)
