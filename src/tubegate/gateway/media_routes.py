"""Binary passthrough routes: thumbnails, avatars, images, manifests and media.

These bypass the cache entirely and go straight through the streaming proxy.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from tubegate.proxy.streaming import StreamingProxy
from tubegate.translator.urls import decode_proxy_url

router = APIRouter()

_THUMBNAIL_HOST = "https://i.ytimg.com"
# Avatar hosts, tried in order.
_AVATAR_HOSTS = ("https://yt3.googleusercontent.com", "https://yt3.ggpht.com")


def _state(request: Request, key: str) -> Any:
    return getattr(request.app.state, key, None)


def _get_proxy(request: Request) -> StreamingProxy:
    proxy = _state(request, "proxy")
    if proxy is None:
        raise HTTPException(status_code=503, detail="proxy unavailable")
    return proxy


@router.get("/vi/{video_id}/{filename:path}")
async def video_thumbnail(video_id: str, filename: str, request: Request) -> Response:
    return await _get_proxy(request).relay_image(f"{_THUMBNAIL_HOST}/vi/{video_id}/{filename}")


@router.get("/vi_webp/{video_id}/{filename:path}")
async def video_thumbnail_webp(video_id: str, filename: str, request: Request) -> Response:
    return await _get_proxy(request).relay_image(f"{_THUMBNAIL_HOST}/vi_webp/{video_id}/{filename}")


@router.get("/ggpht/{path:path}")
async def channel_avatar(path: str, request: Request) -> Response:
    """Avatar/banner passthrough; falls back to the legacy ggpht host."""
    query = f"?{request.url.query}" if request.url.query else ""
    return await _get_proxy(request).relay_image(f"{host}/{path}{query}" for host in _AVATAR_HOSTS)


@router.get("/imgproxy")
async def image_proxy(request: Request, url: str = "") -> Response:
    """Generic image passthrough for a base64url-encoded image URL."""
    return await _get_proxy(request).relay_image(decode_proxy_url(url))


@router.get("/manifest")
async def manifest_proxy(request: Request, url: str = "") -> Response:
    return await _get_proxy(request).relay_manifest(decode_proxy_url(url))


@router.get("/videoplayback")
async def video_playback(request: Request, url: str = "") -> Response:
    """Range-aware media passthrough for a base64url-encoded media URL."""
    target = decode_proxy_url(url)
    return await _get_proxy(request).relay_media(target, request.headers.get("range"))
