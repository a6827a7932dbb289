"""Rewriting of upstream media URLs onto this gateway's proxy endpoints."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any
from urllib.parse import quote

from tubegate.shared.exceptions import InvalidInputError

_GGPHT_HOST = re.compile(r"^https?://yt3\.ggpht\.com")
_YTIMG_THUMB = re.compile(r"^https?://i\.ytimg\.com/((?:vi|vi_webp)/[^/]+/.+)$")

# (quality, filename, width, height), best first.
_THUMBNAIL_VARIANTS: tuple[tuple[str, str, int, int], ...] = (
    ("maxres", "maxresdefault.jpg", 1280, 720),
    ("maxresdefault", "maxresdefault.jpg", 1280, 720),
    ("sddefault", "sddefault.jpg", 640, 480),
    ("high", "hqdefault.jpg", 480, 360),
    ("medium", "mqdefault.jpg", 320, 180),
    ("default", "default.jpg", 120, 90),
)
_COMPACT_QUALITIES = frozenset({"maxres", "high", "medium", "default"})

_AVATAR_SIZES = (32, 48, 76, 176)


def encode_proxy_url(url: str) -> str:
    """Encode ``url`` as unpadded base64url."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_proxy_url(encoded: str) -> str:
    """Reverse :func:`encode_proxy_url`.

    Padding is optional. The result must be an absolute http(s) URL.

    Raises:
        InvalidInputError: If ``encoded`` is not base64url text of such a URL.
    """
    if not encoded:
        raise InvalidInputError("Missing url parameter")
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        url = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid url parameter: {exc}") from exc
    if not url.startswith(("http://", "https://")):
        raise InvalidInputError("Invalid url parameter: not an http(s) URL")
    return url


def to_proxy_url(url: Any) -> str:
    """Rewrite a media URL to ``/videoplayback?url=<base64url>``."""
    if not isinstance(url, str) or not url:
        return ""
    return f"/videoplayback?url={encode_proxy_url(url)}"


def to_image_proxy_url(url: Any) -> str:
    """Rewrite an avatar or banner URL onto ``/ggpht`` or ``/imgproxy``.

    Protocol-relative URLs are upgraded to https first. Other hosts are
    returned unchanged.
    """
    if not isinstance(url, str) or not url:
        return ""
    if url.startswith("//"):
        url = "https:" + url
    if "yt3.ggpht.com" in url:
        return "/ggpht" + _GGPHT_HOST.sub("", url)
    if "googleusercontent.com" in url:
        return f"/imgproxy?url={encode_proxy_url(url)}"
    return url


def to_thumbnail_proxy_url(url: Any) -> str:
    """Rewrite an ``i.ytimg.com`` thumbnail URL onto the local ``/vi`` route."""
    if not isinstance(url, str) or not url:
        return ""
    match = _YTIMG_THUMB.match(url)
    if match:
        return "/" + match.group(1)
    return url


def video_thumbnails(video_id: str, *, compact: bool = False) -> list[dict[str, Any]]:
    """Standard thumbnail set for ``video_id`` served through ``/vi``."""
    return [
        {"quality": quality, "url": f"/vi/{quote(video_id, safe='')}/{filename}", "width": width, "height": height}
        for quality, filename, width, height in _THUMBNAIL_VARIANTS
        if not compact or quality in _COMPACT_QUALITIES
    ]


def author_thumbnails(avatar_url: Any) -> list[dict[str, Any]]:
    """Expand one avatar URL into the standard set of author thumbnail sizes."""
    url = to_image_proxy_url(avatar_url)
    if not url:
        return []
    return [{"url": url, "width": size, "height": size} for size in _AVATAR_SIZES]
