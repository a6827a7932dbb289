"""Lyrics routes backed by the permanent ``lyrics`` cache class and LRCLIB."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from tubegate.cache.coordinator import CacheCoordinator
from tubegate.cache.policy import make_key
from tubegate.lyrics.lrclib import LrclibClient, lyrics_id
from tubegate.shared.enums import ContentClass

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/lyrics")


def _state(request: Request, key: str) -> Any:
    return getattr(request.app.state, key, None)


def _get_cache(request: Request) -> CacheCoordinator:
    cache = _state(request, "cache")
    if cache is None:
        raise HTTPException(status_code=503, detail="cache unavailable")
    return cache


def _get_lrclib(request: Request) -> LrclibClient:
    lrclib = _state(request, "lrclib")
    if lrclib is None:
        raise HTTPException(status_code=503, detail="lyrics service unavailable")
    return lrclib


def _require_track(track: str) -> str:
    if not track:
        raise HTTPException(status_code=400, detail="Missing track parameter")
    return track


@router.get("/cache")
async def cached_lyrics(request: Request, track: str = "", artist: str = "") -> dict[str, Any]:
    """Cache lookup only; never calls LRCLIB."""
    cached = await _get_cache(request).get_lyrics(lyrics_id(_require_track(track), artist))
    if cached is None:
        logger.info("lyrics cache miss: %r by %r", track, artist)
        return {"found": False}
    logger.info("lyrics cache hit: %r by %r", track, artist)
    return {"found": True, "data": cached}


@router.post("/cache")
async def store_lyrics(request: Request) -> dict[str, bool]:
    """Store client-supplied lyrics under ``{track, artist}``."""
    try:
        body = json.loads(await request.body())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON")

    track = body.get("track")
    artist = body.get("artist") or ""
    lyrics_data = body.get("lyricsData")
    if not track or not isinstance(track, str) or not lyrics_data or not isinstance(artist, str):
        raise HTTPException(status_code=400, detail="Missing track or lyricsData")

    await _get_cache(request).cache_lyrics(lyrics_id(track, artist), lyrics_data)
    return {"success": True}


@router.get("/fetch")
async def fetch_lyrics(request: Request, track: str = "", artist: str = "", duration: int = 0) -> dict[str, Any]:
    """Cached lyrics, else an LRCLIB lookup that is cached on success."""
    _require_track(track)
    cache = _get_cache(request)
    key = lyrics_id(track, artist)
    cached = await cache.get_lyrics(key)
    if cached is not None:
        return cached

    logger.info("fetching lyrics from lrclib: %r by %r", track, artist)
    data = await _get_lrclib(request).fetch(track, artist, duration or None)
    if data is None:
        raise HTTPException(status_code=404, detail="Lyrics not found")
    await cache.cache_lyrics(key, data)
    return data


@router.get("/search")
async def search_lyrics(request: Request, q: str = "") -> list[dict[str, Any]]:
    if not q:
        raise HTTPException(status_code=400, detail="Missing q parameter")
    return await _get_lrclib(request).search(q)


@router.get("/stats")
async def lyrics_stats(request: Request) -> dict[str, Any]:
    """Where lyrics live and how many are held in each tier."""
    cache = _get_cache(request)
    prefix = make_key(ContentClass.LYRICS, "")
    return {
        "cacheDir": str(cache.durable.cache_dir),
        "memoryCacheSize": sum(1 for key in cache.memory.keys() if key.startswith(prefix)),
        "diskCacheSize": await cache.durable.size(),
    }
