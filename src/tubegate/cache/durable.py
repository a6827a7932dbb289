"""Content-hashed on-disk cache tier."""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

from tubegate.shared.models import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_TTL = 60 * 60.0
_SUFFIX = ".json"


class DurableTier:
    """One JSON file per key, named by the SHA-256 digest of the key.

    Each file holds ``{key, value, createdAt, expiresAt}`` so it can be read
    back without any in-memory state; expiry is re-checked on every read.

    Every filesystem failure is logged, counted under ``errors`` and turned
    into a miss (reads) or a no-op (writes). Nothing is raised to callers.
    Writes go to a unique temporary file that is then renamed over the
    target, so readers never observe a half-written entry.
    """

    def __init__(
        self,
        cache_dir: str | os.PathLike[str],
        *,
        default_ttl: float | None = _DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir)
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._errors = 0
        self._ensure_dir()

    @property
    def cache_dir(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        """Return the file that stores ``key``."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}{_SUFFIX}"

    # ── Async API ──────────────────────────────────────────────

    async def get(self, key: str) -> Any | None:
        """Read ``key`` from disk; expired or unreadable entries are misses."""
        entry = await self.get_entry(key)
        return None if entry is None else entry.value

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Like :meth:`get` but returns the whole entry, including its expiry."""
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
            entry = CacheEntry.model_validate_json(raw)
        except FileNotFoundError:
            self._misses += 1
            return None
        except (OSError, ValueError) as exc:
            self._record_error("read", key, exc)
            self._misses += 1
            return None

        if entry.key != key:
            logger.warning("durable entry %s holds key %r, expected %r", path.name, entry.key, key)
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            await self.delete(key)
            self._misses += 1
            return None
        self._hits += 1
        return entry

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Write ``key``; ``ttl=None`` uses the tier default, ``0`` is permanent."""
        payload = self._serialize(key, value, ttl)
        if payload is None:
            return
        path = self.path_for(key)
        tmp = self._tmp_path(path)
        try:
            await self._aensure_dir()
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp, path)
        except OSError as exc:
            self._record_error("write", key, exc)
            await self._discard(tmp)
            return
        self._sets += 1

    async def delete(self, key: str) -> bool:
        """Remove the file for ``key``; True iff a file was removed."""
        try:
            await aiofiles.os.remove(self.path_for(key))
        except FileNotFoundError:
            return False
        except OSError as exc:
            self._record_error("delete", key, exc)
            return False
        self._deletes += 1
        return True

    async def clear(self) -> int:
        """Remove every entry file. Returns the number removed."""
        cleared = 0
        for path in await self._aentry_files():
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                self._record_error("clear", path.name, exc)
                continue
            cleared += 1
        return cleared

    async def cleanup_expired(self) -> int:
        """Sweep the directory and delete expired entries.

        Returns:
            Number of files removed.
        """
        now = self._clock()
        cleaned = 0
        for path in await self._aentry_files():
            try:
                async with aiofiles.open(path, encoding="utf-8") as f:
                    entry = CacheEntry.model_validate_json(await f.read())
                if entry.is_expired(now):
                    await aiofiles.os.remove(path)
                    cleaned += 1
            except FileNotFoundError:
                continue
            except (OSError, ValueError) as exc:
                self._record_error("cleanup", path.name, exc)
        if cleaned:
            logger.info("durable cleanup removed %d expired entries", cleaned)
        return cleaned

    # ── Sync API (startup/shutdown paths) ──────────────────────

    def get_sync(self, key: str) -> Any | None:
        entry = self.get_entry_sync(key)
        return None if entry is None else entry.value

    def get_entry_sync(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            self._misses += 1
            return None
        except (OSError, ValueError) as exc:
            self._record_error("read", key, exc)
            self._misses += 1
            return None

        if entry.key != key:
            logger.warning("durable entry %s holds key %r, expected %r", path.name, entry.key, key)
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            self.delete_sync(key)
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def set_sync(self, key: str, value: Any, ttl: float | None = None) -> None:
        payload = self._serialize(key, value, ttl)
        if payload is None:
            return
        path = self.path_for(key)
        tmp = self._tmp_path(path)
        try:
            self._ensure_dir()
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            self._record_error("write", key, exc)
            with contextlib.suppress(OSError):
                tmp.unlink()
            return
        self._sets += 1

    def delete_sync(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            self._record_error("delete", key, exc)
            return False
        self._deletes += 1
        return True

    # ── Introspection ──────────────────────────────────────────

    async def size(self) -> int:
        """Physical entry-file count; expired files not yet swept are included."""
        return len(await self._aentry_files())

    def size_sync(self) -> int:
        return len(self._entry_files())

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "sets": self._sets,
            "deletes": self._deletes,
            "errors": self._errors,
            "cache_dir": str(self._dir),
            "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
        }

    # ── Internals ──────────────────────────────────────────────

    def _serialize(self, key: str, value: Any, ttl: float | None) -> str | None:
        if ttl is None:
            ttl = self._default_ttl
        entry = CacheEntry.build(key, value, ttl, self._clock())
        try:
            return json.dumps(entry.model_dump(by_alias=True), ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            self._record_error("serialize", key, exc)
            return None

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._record_error("mkdir", str(self._dir), exc)

    async def _aensure_dir(self) -> None:
        try:
            await aiofiles.os.makedirs(self._dir, exist_ok=True)
        except OSError as exc:
            self._record_error("mkdir", str(self._dir), exc)

    def _entry_files(self) -> list[Path]:
        try:
            return [p for p in self._dir.iterdir() if p.suffix == _SUFFIX]
        except OSError as exc:
            self._record_error("list", str(self._dir), exc)
            return []

    async def _aentry_files(self) -> list[Path]:
        try:
            names = await aiofiles.os.listdir(self._dir)
        except OSError as exc:
            self._record_error("list", str(self._dir), exc)
            return []
        return [self._dir / name for name in names if name.endswith(_SUFFIX)]

    @staticmethod
    def _tmp_path(path: Path) -> Path:
        return path.with_name(f"{path.stem}.{uuid.uuid4().hex}.tmp")

    async def _discard(self, tmp: Path) -> None:
        with contextlib.suppress(OSError):
            await aiofiles.os.remove(tmp)

    def _record_error(self, op: str, target: str, exc: Exception) -> None:
        self._errors += 1
        logger.warning("durable cache %s failed for %s: %s", op, target, exc)
