"""JSON API routes: search, videos, channels, trending and stats.

Every handler consults the cache first, calls the upstream client on a miss,
translates the raw result and writes the translation back before answering.
Upstream exceptions are not caught here; the error boundary turns them into
500 responses.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from tubegate.cache.coordinator import CacheCoordinator
from tubegate.cache.policy import make_key
from tubegate.shared.enums import ContentClass
from tubegate.shared.exceptions import UpstreamUnavailableError
from tubegate.translator.convert import (
    related_item_id,
    translate_channel,
    translate_channel_playlists,
    translate_channel_posts,
    translate_channel_shorts,
    translate_channel_videos,
    translate_search_results,
    translate_video,
)
from tubegate.translator.dash import generate_dash_manifest
from tubegate.translator.parsing import dig, list_of, text_of
from tubegate.upstream.interfaces import UpstreamClient

logger = logging.getLogger(__name__)

router = APIRouter()

_TRENDING_FALLBACK_QUERY = "music video 2024"
_CHANNEL_UPLOADS_IN_RELATED = 5


def _state(request: Request, key: str) -> Any:
    return getattr(request.app.state, key, None)


def _get_cache(request: Request) -> CacheCoordinator:
    cache = _state(request, "cache")
    if cache is None:
        raise HTTPException(status_code=503, detail="cache unavailable")
    return cache


def _get_upstream(request: Request) -> UpstreamClient:
    upstream = _state(request, "upstream")
    if upstream is None:
        raise UpstreamUnavailableError("upstream client unavailable")
    return upstream


def _require(value: str, name: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing {name} parameter")
    return value


# ── Search ─────────────────────────────────────────────────────


@router.get("/api/v1/search")
async def search(request: Request, q: str = "") -> list[dict[str, Any]]:
    """Search videos, channels and playlists."""
    query = _require(q, "q")
    cache = _get_cache(request)
    cached = await cache.get_search_results(f"q={query}")
    if cached is not None:
        return cached

    results = await _get_upstream(request).search(query)
    translated = translate_search_results(dig(results, "results"))
    await cache.cache_search_results(f"q={query}", translated)
    return translated


@router.get("/api/v1/search/suggestions")
async def search_suggestions(request: Request, q: str = "") -> dict[str, Any]:
    query = _require(q, "q")
    cache = _get_cache(request)
    cached = await cache.get_search_results(f"suggest={query}")
    if cached is not None:
        return cached

    suggestions = await _get_upstream(request).get_search_suggestions(query)
    payload = {"query": query, "suggestions": [s for s in list_of(suggestions) if isinstance(s, str)]}
    await cache.cache_search_results(f"suggest={query}", payload)
    return payload


# ── Videos ─────────────────────────────────────────────────────


async def _watch_page(upstream: UpstreamClient, video_id: str) -> tuple[list[Any], str, Any]:
    """Related feed, channel id and channel avatar from the full watch page.

    The watch page only enriches the answer, so its failure is logged and
    yields empty results.
    """
    try:
        full_info = await upstream.get_info(video_id)
    except Exception as exc:
        logger.info("no watch page for %s: %s", video_id, exc)
        return [], "", None

    related = list_of(dig(full_info, "watch_next_feed"))
    channel_id = dig(full_info, "basic_info", "channel_id") or dig(
        full_info, "secondary_info", "owner", "author", "id", default=""
    )
    avatar = dig(full_info, "secondary_info", "owner", "author", "thumbnails", 0, "url")
    return related, channel_id if isinstance(channel_id, str) else "", avatar


async def _other_uploads(upstream: UpstreamClient, channel_id: str, video_id: str) -> list[Any]:
    """A few other uploads of the same channel; empty when unavailable."""
    if not channel_id:
        return []
    try:
        channel = await upstream.get_channel(channel_id)
        tab = await channel.get_videos()
    except Exception as exc:
        logger.info("no channel uploads for %s: %s", channel_id, exc)
        return []
    uploads = [v for v in list_of(dig(tab, "videos")) if related_item_id(v) != video_id]
    return uploads[:_CHANNEL_UPLOADS_IN_RELATED]


def _merge_related(channel_videos: list[Any], related: list[Any]) -> list[Any]:
    """Channel uploads first, then the related feed, de-duplicated by video id."""
    seen: set[str] = set()
    merged = []
    for item in [*channel_videos, *related]:
        vid = related_item_id(item)
        if vid and vid not in seen:
            seen.add(vid)
            merged.append(item)
    return merged


@router.get("/api/v1/videos/{video_id}")
async def video_detail(video_id: str, request: Request) -> dict[str, Any]:
    """Full video detail with proxied streams and recommendations."""
    cache = _get_cache(request)
    cached = await cache.get_video_info(video_id)
    if cached is not None:
        return cached

    upstream = _get_upstream(request)
    info = await upstream.get_basic_info(video_id)
    related, channel_id, avatar = await _watch_page(upstream, video_id)
    channel_videos = await _other_uploads(upstream, channel_id, video_id)
    merged = _merge_related(channel_videos, related)
    logger.info(
        "video %s: %d channel + %d related = %d recommendations",
        video_id,
        len(channel_videos),
        len(related),
        len(merged),
    )

    translated = translate_video(info, merged, avatar)
    await cache.cache_video_info(video_id, translated)
    return translated


@router.get("/api/manifest/dash/id/{video_id}")
async def dash_manifest(video_id: str, request: Request) -> Response:
    """DASH manifest generated from the video's adaptive formats."""
    info = await _get_upstream(request).get_basic_info(video_id)
    formats = list_of(dig(info, "streaming_data", "adaptive_formats"))
    if not formats:
        raise HTTPException(status_code=404, detail="No streaming data")
    manifest = generate_dash_manifest(formats, dig(info, "basic_info", "duration", default=0))
    return Response(content=manifest, media_type="application/dash+xml", headers={"Cache-Control": "no-cache"})


# ── Channels ───────────────────────────────────────────────────


@router.get("/api/v1/channels/{channel_id}")
async def channel_detail(channel_id: str, request: Request) -> dict[str, Any]:
    cache = _get_cache(request)
    cached = await cache.get_channel_info(channel_id)
    if cached is not None:
        return cached

    channel = await _get_upstream(request).get_channel(channel_id)
    latest: list[dict[str, Any]] = []
    if dig(channel, "has_videos"):
        try:
            tab = await channel.get_videos()
            latest = translate_channel_videos(dig(tab, "videos"), channel_id)
        except Exception as exc:
            logger.info("could not fetch latest videos for %s: %s", channel_id, exc)

    translated = translate_channel(channel, channel_id, latest)
    await cache.cache_channel_info(channel_id, translated)
    return translated


def _continuation(tab: Any) -> str | None:
    return "has_more" if dig(tab, "has_continuation") else None


async def _channel_subresource(channel: Any, channel_id: str, sub: str) -> dict[str, Any]:
    metadata = dig(channel, "metadata")
    author = text_of(dig(metadata, "title"))

    if sub == "videos":
        tab = await channel.get_videos()
        return {"videos": translate_channel_videos(dig(tab, "videos"), channel_id), "continuation": _continuation(tab)}
    if sub == "shorts" and dig(channel, "has_shorts"):
        tab = await channel.get_shorts()
        return {"videos": translate_channel_shorts(dig(tab, "videos"), channel_id), "continuation": _continuation(tab)}
    if sub in ("live", "streams") and dig(channel, "has_live_streams"):
        tab = await channel.get_live_streams()
        return {"videos": translate_channel_videos(dig(tab, "videos"), channel_id), "continuation": _continuation(tab)}
    if sub == "playlists" and dig(channel, "has_playlists"):
        tab = await channel.get_playlists()
        playlists = translate_channel_playlists(dig(tab, "playlists"), channel_id, author)
        return {"playlists": playlists, "continuation": _continuation(tab)}
    if sub in ("community", "posts") and dig(channel, "has_community"):
        tab = await channel.get_community()
        avatar = dig(metadata, "avatar", 0, "url")
        posts = translate_channel_posts(dig(tab, "posts"), channel_id, author, avatar)
        return {"comments": posts, "continuation": _continuation(tab)}
    return {"videos": [], "continuation": None}


_CHANNEL_SUBRESOURCES = frozenset({"videos", "shorts", "live", "streams", "playlists", "community", "posts"})


@router.get("/api/v1/channels/{channel_id}/{sub}")
async def channel_subresource(channel_id: str, sub: str, request: Request) -> dict[str, Any]:
    """One tab of a channel; tabs the channel lacks come back empty."""
    if sub not in _CHANNEL_SUBRESOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown sub-resource: {sub}")

    cache = _get_cache(request)
    key = make_key(ContentClass.CHANNEL_METADATA, f"{channel_id}/{sub}")
    cached = await cache.get(key, ContentClass.CHANNEL_METADATA)
    if cached is not None:
        return cached

    channel = await _get_upstream(request).get_channel(channel_id)
    payload = await _channel_subresource(channel, channel_id, sub)
    await cache.set(key, payload, ContentClass.CHANNEL_METADATA)
    return payload


# ── Trending ───────────────────────────────────────────────────


@router.get("/api/v1/trending")
@router.get("/api/v1/popular")
async def trending(request: Request) -> list[dict[str, Any]]:
    """Trending videos, falling back to a popular search when trending fails."""
    cache = _get_cache(request)
    cached = await cache.get_search_results("trending")
    if cached is not None:
        return cached

    upstream = _get_upstream(request)
    try:
        page = await upstream.get_trending()
        translated = translate_search_results(dig(page, "videos"))
    except Exception as exc:
        logger.info("trending failed (%s), using search fallback", exc)
        try:
            results = await upstream.search(_TRENDING_FALLBACK_QUERY, sort_by="view_count")
        except Exception as fallback_exc:
            logger.error("trending search fallback failed: %s", fallback_exc)
            raise HTTPException(status_code=500, detail="Unable to fetch trending videos") from fallback_exc
        translated = translate_search_results(dig(results, "results"))

    await cache.cache_search_results("trending", translated)
    return translated


# ── Stats ──────────────────────────────────────────────────────


@router.get("/api/v1/stats")
async def stats(request: Request) -> dict[str, Any]:
    """Static health/version object."""
    settings = _state(request, "settings")
    version = settings.version if settings is not None else "1.0.0"
    return {
        "version": version,
        "software": {"name": "tubegate", "version": version},
        "openRegistrations": False,
        "usage": {"users": {"total": 1, "activeHalfyear": 1, "activeMonth": 1}},
    }


@router.get("/api/v1/cache/stats")
async def cache_stats(request: Request) -> dict[str, Any]:
    """Counters of both cache tiers and the coordinator."""
    cache = _get_cache(request)
    stats = cache.stats()
    stats["durable"]["size"] = await cache.durable.size()
    return stats
