"""Frozen Pydantic models shared by the cache tiers."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """One cached value with its expiry.

    Timestamps are Unix epoch seconds. ``expires_at=None`` means the entry
    never expires. Serialized with camelCase aliases so the on-disk layout is
    ``{key, value, createdAt, expiresAt}``.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    key: str
    value: Any = None
    created_at: float = Field(default_factory=time.time, alias="createdAt")
    expires_at: float | None = Field(default=None, alias="expiresAt")

    @classmethod
    def build(cls, key: str, value: Any, ttl: float | None, now: float) -> CacheEntry:
        """Create an entry; a ``ttl`` of ``None`` or ``<= 0`` is permanent."""
        expires_at = now + ttl if ttl is not None and ttl > 0 else None
        return cls(key=key, value=value, created_at=now, expires_at=expires_at)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at
