"""Conversion of upstream client objects into the published wire schema.

Every function is pure and total: missing, ``None`` or wrongly-typed fields
at any depth fall back to an empty string, empty list, ``0`` or ``False``,
and every key of the target object is always present. Media URLs are
rewritten onto this gateway's proxy routes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from tubegate.translator.parsing import bool_of, dig, int_of, list_of, parse_count, parse_duration, text_of
from tubegate.translator.urls import (
    author_thumbnails,
    to_image_proxy_url,
    to_proxy_url,
    to_thumbnail_proxy_url,
    video_thumbnails,
)

# Related-feed entries that are collections rather than single videos.
_SKIPPED_RELATED_TYPES = frozenset(
    {"Playlist", "CompactPlaylist", "Mix", "CompactMix", "Radio", "CompactRadio", "RichSection"}
)
_SKIPPED_LOCKUP_CONTENT = frozenset({"PLAYLIST", "MIX"})
_DURATION_BADGES = frozenset({"ThumbnailOverlayBadgeView", "ThumbnailOverlayTimeStatusView"})

_PLAYABILITY_MESSAGES = {
    "LOGIN_REQUIRED": "This video requires login",
    "UNPLAYABLE": "This video is unavailable",
    "ERROR": "This video failed to load",
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _id_of(item: Any, *fields: str) -> str:
    for field in fields:
        value = dig(item, field)
        if isinstance(value, str) and value:
            return value
    return ""


def _author_name(author: Any) -> str:
    if isinstance(author, str):
        return author
    return _str(dig(author, "name"))


def _container(mime_type: Any) -> str:
    """``"video/mp4; codecs=..."`` -> ``"mp4"``."""
    if not isinstance(mime_type, str) or "/" not in mime_type:
        return ""
    return mime_type.split("/", 1)[1].split(";", 1)[0].strip()


def _byte_range(value: Any) -> str:
    if value is None:
        return "0-0"
    return f"{int_of(dig(value, 'start'))}-{int_of(dig(value, 'end'))}"


# ── Search results ─────────────────────────────────────────────


def translate_search_video(item: Any) -> dict[str, Any]:
    video_id = _id_of(item, "id", "video_id")
    author_id = _str(dig(item, "author", "id"))
    view_text = text_of(dig(item, "view_count")) or text_of(dig(item, "short_view_count"))
    published = text_of(dig(item, "published"))
    return {
        "type": "video",
        "title": text_of(dig(item, "title")),
        "videoId": video_id,
        "author": _author_name(dig(item, "author")),
        "authorId": author_id,
        "authorUrl": f"/channel/{author_id}",
        "videoThumbnails": video_thumbnails(video_id) if video_id else [],
        "description": text_of(dig(item, "description")) or text_of(dig(item, "description_snippet")),
        "viewCount": parse_count(view_text),
        "viewCountText": view_text,
        "published": published,
        "publishedText": published,
        "lengthSeconds": int_of(dig(item, "duration", "seconds")),
        "liveNow": bool_of(dig(item, "is_live")),
    }


def translate_search_channel(item: Any) -> dict[str, Any]:
    author_id = _str(dig(item, "author", "id")) or _id_of(item, "id")
    return {
        "type": "channel",
        "author": _author_name(dig(item, "author")),
        "authorId": author_id,
        "authorUrl": f"/channel/{author_id}",
        "authorThumbnails": author_thumbnails(dig(item, "author", "thumbnails", 0, "url")),
        "subCount": text_of(dig(item, "subscriber_count")),
        "videoCount": text_of(dig(item, "video_count")),
        "description": text_of(dig(item, "description")) or text_of(dig(item, "description_snippet")),
    }


def translate_search_playlist(item: Any) -> dict[str, Any]:
    return {
        "type": "playlist",
        "title": text_of(dig(item, "title")),
        "playlistId": _id_of(item, "id", "playlist_id"),
        "author": _author_name(dig(item, "author")),
        "authorId": _str(dig(item, "author", "id")),
        "videoCount": int_of(dig(item, "video_count")) or parse_count(text_of(dig(item, "video_count"))),
    }


_SEARCH_TRANSLATORS = {
    "Video": translate_search_video,
    "Channel": translate_search_channel,
    "Playlist": translate_search_playlist,
}


def translate_search_result(item: Any) -> dict[str, Any] | None:
    """Translate one search hit; ``None`` for kinds the schema has no variant for."""
    translator = _SEARCH_TRANSLATORS.get(_str(dig(item, "type")))
    if translator is None:
        return None
    return translator(item)


def translate_search_results(items: Any) -> list[dict[str, Any]]:
    translated = (translate_search_result(item) for item in list_of(items))
    return [item for item in translated if item is not None]


# ── Related videos ─────────────────────────────────────────────


def _lockup_fields(item: Any) -> dict[str, Any]:
    """Fields of a modern ``LockupView`` related entry."""
    meta = dig(item, "metadata")
    rows = list_of(dig(meta, "metadata", "metadata_rows"))
    first_part = dig(rows, 0, "metadata_parts", 0, "text")
    author = text_of(first_part)
    author_id = _str(dig(first_part, "command", "inner_endpoint", "browse_id"))
    view_text = text_of(dig(rows, 1, "metadata_parts", 0, "text"))
    published = text_of(dig(rows, 1, "metadata_parts", 1, "text"))

    if not author:
        author = text_of(dig(meta, "byline"))
    if not author:
        author = text_of(dig(meta, "owner", "title"))

    duration = 0
    for decoration in list_of(dig(item, "content_image", "decorations")):
        if _str(dig(decoration, "type")) in _DURATION_BADGES and dig(decoration, "text"):
            duration = parse_duration(text_of(dig(decoration, "text")))
            break

    return {
        "videoId": _id_of(item, "content_id"),
        "title": text_of(dig(meta, "title")),
        "author": author,
        "authorId": author_id,
        "viewCountText": view_text,
        "publishedText": published,
        "lengthSeconds": duration,
    }


def _compact_fields(item: Any) -> dict[str, Any]:
    """Fields of a legacy ``CompactVideo`` / ``Video`` related entry."""
    return {
        "videoId": _id_of(item, "id", "video_id"),
        "title": text_of(dig(item, "title")),
        "author": _author_name(dig(item, "author")),
        "authorId": _str(dig(item, "author", "id")),
        "viewCountText": text_of(dig(item, "view_count")) or text_of(dig(item, "short_view_count")),
        "publishedText": text_of(dig(item, "published")),
        "lengthSeconds": int_of(dig(item, "duration", "seconds")),
    }


def _generic_fields(item: Any) -> dict[str, Any]:
    return {
        "videoId": _id_of(item, "id", "video_id", "content_id"),
        "title": text_of(dig(item, "title")),
        "author": _author_name(dig(item, "author")),
        "authorId": _str(dig(item, "author", "id")),
        "viewCountText": "",
        "publishedText": "",
        "lengthSeconds": 0,
    }


def translate_related_item(item: Any) -> dict[str, Any] | None:
    """Normalize one related-feed entry into a compact video object.

    Returns ``None`` for collection entries (playlists, mixes, sections).
    Entries without any id still translate, with an empty ``videoId``.
    """
    kind = _str(dig(item, "type"))
    if kind in _SKIPPED_RELATED_TYPES:
        return None
    if kind == "LockupView":
        if _str(dig(item, "content_type")) in _SKIPPED_LOCKUP_CONTENT:
            return None
        fields = _lockup_fields(item)
    elif kind in ("CompactVideo", "Video"):
        fields = _compact_fields(item)
    else:
        fields = _generic_fields(item)

    video_id = fields["videoId"]
    return {
        "videoId": video_id,
        "title": fields["title"],
        "author": fields["author"],
        "authorId": fields["authorId"],
        "authorUrl": f"/channel/{fields['authorId']}",
        "authorThumbnails": [],
        "videoThumbnails": video_thumbnails(video_id, compact=True) if video_id else [],
        "viewCount": parse_count(fields["viewCountText"]),
        "viewCountText": fields["viewCountText"],
        "lengthSeconds": fields["lengthSeconds"],
        "published": fields["publishedText"],
        "publishedText": fields["publishedText"],
    }


def translate_related_items(items: Any) -> list[dict[str, Any]]:
    """Translate a related feed, dropping collections and id-less entries."""
    translated = (translate_related_item(item) for item in list_of(items))
    return [item for item in translated if item is not None and item["videoId"]]


def related_item_id(item: Any) -> str:
    """Video id of a raw related-feed entry, whatever its shape."""
    return _id_of(item, "id", "video_id", "content_id")


# ── Channels ───────────────────────────────────────────────────


def translate_channel_video(video: Any, channel_id: str) -> dict[str, Any]:
    video_id = _id_of(video, "id", "video_id")
    view_text = text_of(dig(video, "view_count")) or text_of(dig(video, "short_view_count"))
    return {
        "type": "video",
        "title": text_of(dig(video, "title")),
        "videoId": video_id,
        "author": _author_name(dig(video, "author")),
        "authorId": channel_id,
        "authorUrl": f"/channel/{channel_id}",
        "videoThumbnails": video_thumbnails(video_id, compact=True) if video_id else [],
        "description": "",
        "viewCount": parse_count(view_text),
        "viewCountText": view_text,
        "published": 0,
        "publishedText": text_of(dig(video, "published")),
        "lengthSeconds": int_of(dig(video, "duration", "seconds")),
        "liveNow": bool_of(dig(video, "is_live")),
        "isUpcoming": bool_of(dig(video, "is_upcoming")),
    }


def translate_channel_videos(videos: Any, channel_id: str) -> list[dict[str, Any]]:
    translated = (translate_channel_video(video, channel_id) for video in list_of(videos))
    return [video for video in translated if video["videoId"]]


def translate_channel_shorts(videos: Any, channel_id: str) -> list[dict[str, Any]]:
    shorts = []
    for video in list_of(videos):
        video_id = _id_of(video, "id", "video_id")
        if not video_id:
            continue
        shorts.append(
            {
                "type": "video",
                "title": text_of(dig(video, "title")),
                "videoId": video_id,
                "author": "",
                "authorId": channel_id,
                "authorUrl": f"/channel/{channel_id}",
                "videoThumbnails": video_thumbnails(video_id)[:1],
                "viewCount": parse_count(text_of(dig(video, "views"))),
                "viewCountText": text_of(dig(video, "views")),
                "lengthSeconds": 60,
                "liveNow": False,
            }
        )
    return shorts


def translate_channel_playlists(playlists: Any, channel_id: str, author: str) -> list[dict[str, Any]]:
    translated = []
    for playlist in list_of(playlists):
        first_video = _str(dig(playlist, "first_video_id"))
        translated.append(
            {
                "type": "playlist",
                "title": text_of(dig(playlist, "title")),
                "playlistId": _id_of(playlist, "id"),
                "playlistThumbnail": f"/vi/{first_video}/mqdefault.jpg" if first_video else "",
                "author": author,
                "authorId": channel_id,
                "videoCount": int_of(dig(playlist, "video_count")) or parse_count(text_of(dig(playlist, "video_count"))),
            }
        )
    return translated


def translate_channel_posts(posts: Any, channel_id: str, author: str, avatar_url: Any) -> list[dict[str, Any]]:
    thumbnails = author_thumbnails(avatar_url)
    translated = []
    for post in list_of(posts):
        content = text_of(dig(post, "content"))
        translated.append(
            {
                "author": author,
                "authorId": channel_id,
                "authorThumbnails": thumbnails,
                "authorUrl": f"/channel/{channel_id}",
                "commentId": _id_of(post, "id"),
                "content": content,
                "contentHtml": content,
                "likeCount": 0,
                "publishedText": text_of(dig(post, "published")),
                "replyCount": 0,
                "attachment": None,
            }
        )
    return translated


def channel_tabs(channel: Any) -> list[str]:
    """Tabs a channel exposes, in display order; ``about`` is always present."""
    flags = (
        ("has_videos", "videos"),
        ("has_shorts", "shorts"),
        ("has_live_streams", "live"),
        ("has_playlists", "playlists"),
        ("has_community", "community"),
    )
    tabs = [tab for flag, tab in flags if bool_of(dig(channel, flag))]
    tabs.append("about")
    return tabs


def translate_channel(
    channel: Any,
    channel_id: str,
    latest_videos: Iterable[dict[str, Any]] = (),
) -> dict[str, Any]:
    """Translate a channel record into the channel-detail object."""
    metadata = dig(channel, "metadata")
    banner = to_image_proxy_url(dig(metadata, "banner", 0, "url"))
    description = text_of(dig(metadata, "description"))
    return {
        "author": text_of(dig(metadata, "title")),
        "authorId": channel_id,
        "authorUrl": f"/channel/{channel_id}",
        "authorVerified": False,
        "authorBanners": [{"url": banner, "width": 1280, "height": 720}] if banner else [],
        "authorThumbnails": author_thumbnails(dig(metadata, "avatar", 0, "url")),
        "subCount": parse_count(text_of(dig(metadata, "subscriber_count"))),
        "totalViews": 0,
        "joined": 0,
        "autoGenerated": False,
        "isFamilyFriendly": bool_of(dig(metadata, "is_family_safe"), default=True),
        "description": description,
        "descriptionHtml": description,
        "allowedRegions": [],
        "tabs": channel_tabs(channel),
        "latestVideos": list(latest_videos),
        "relatedChannels": [],
    }


# ── Video detail ───────────────────────────────────────────────


def translate_format_stream(fmt: Any) -> dict[str, Any]:
    """A muxed (audio+video) stream."""
    quality_label = _str(dig(fmt, "quality_label"))
    quality = quality_label or _str(dig(fmt, "quality"))
    return {
        "url": to_proxy_url(dig(fmt, "url")),
        "itag": int_of(dig(fmt, "itag")),
        "type": _str(dig(fmt, "mime_type")),
        "quality": quality,
        "container": _container(dig(fmt, "mime_type")) or "mp4",
        "encoding": _str(dig(fmt, "codecs")),
        "resolution": quality_label,
        "qualityLabel": quality,
        "size": f"{int_of(dig(fmt, 'width'))}x{int_of(dig(fmt, 'height'))}",
    }


def translate_adaptive_format(fmt: Any) -> dict[str, Any]:
    """An audio-only or video-only stream."""
    quality_label = _str(dig(fmt, "quality_label"))
    height = int_of(dig(fmt, "height"))
    return {
        "url": to_proxy_url(dig(fmt, "url")),
        "itag": int_of(dig(fmt, "itag")),
        "type": _str(dig(fmt, "mime_type")),
        "bitrate": int_of(dig(fmt, "bitrate")),
        "width": int_of(dig(fmt, "width")),
        "height": height,
        "container": _container(dig(fmt, "mime_type")),
        "encoding": _str(dig(fmt, "codecs")),
        "qualityLabel": quality_label,
        "resolution": quality_label or (f"{height}p" if height else ""),
        "fps": int_of(dig(fmt, "fps")),
        "audioQuality": _str(dig(fmt, "audio_quality")),
        "audioSampleRate": int_of(dig(fmt, "audio_sample_rate")),
        "audioChannels": int_of(dig(fmt, "audio_channels")),
        "init": _byte_range(dig(fmt, "init_range")),
        "index": _byte_range(dig(fmt, "index_range")),
        "clen": str(int_of(dig(fmt, "content_length"))),
        "lmt": str(dig(fmt, "last_modified", default="")),
    }


def playability_error(status: Any) -> str | None:
    """Human-readable reason for a non-OK playability status, else ``None``."""
    code = _str(dig(status, "status"))
    if code not in _PLAYABILITY_MESSAGES:
        return None
    if code == "LOGIN_REQUIRED":
        return _PLAYABILITY_MESSAGES[code]
    return _str(dig(status, "reason")) or _PLAYABILITY_MESSAGES[code]


def translate_video(info: Any, related: Any = None, channel_avatar: Any = None) -> dict[str, Any]:
    """Translate a video-detail-plus-streams record.

    Args:
        info: Upstream record with ``basic_info``, ``streaming_data`` and
            ``playability_status``.
        related: Raw related-feed entries for ``recommendedVideos``.
        channel_avatar: Optional avatar URL of the uploading channel.
    """
    details = dig(info, "basic_info")
    streaming = dig(info, "streaming_data")
    playability = dig(info, "playability_status")
    video_id = _str(dig(details, "id"))
    channel_id = _str(dig(details, "channel_id"))
    description = _str(dig(details, "short_description"))

    thumbnails = [
        {
            "quality": _str(dig(thumb, "quality")),
            "url": to_thumbnail_proxy_url(dig(thumb, "url")),
            "width": int_of(dig(thumb, "width")),
            "height": int_of(dig(thumb, "height")),
        }
        for thumb in list_of(dig(details, "thumbnail"))
    ]

    return {
        "type": "video",
        "title": text_of(dig(details, "title")),
        "videoId": video_id,
        "videoThumbnails": thumbnails,
        "description": description,
        "descriptionHtml": description,
        "published": _str(dig(details, "publish_date")),
        "publishedText": "",
        "keywords": [k for k in list_of(dig(details, "keywords")) if isinstance(k, str)],
        "viewCount": int_of(dig(details, "view_count")),
        "likeCount": int_of(dig(details, "like_count")),
        "dislikeCount": 0,
        "paid": False,
        "premium": False,
        "isFamilyFriendly": True,
        "allowedRegions": [],
        "genre": _str(dig(details, "category")),
        "author": _author_name(dig(details, "author")),
        "authorId": channel_id,
        "authorUrl": f"/channel/{channel_id}",
        "authorThumbnails": author_thumbnails(channel_avatar),
        "subCountText": "",
        "lengthSeconds": int_of(dig(details, "duration")),
        "allowRatings": True,
        "rating": 0,
        "isListed": True,
        "liveNow": bool_of(dig(details, "is_live")),
        "isUpcoming": bool_of(dig(details, "is_upcoming")),
        "hlsUrl": _str(dig(streaming, "hls_manifest_url")) or None,
        "dashUrl": f"/api/manifest/dash/id/{video_id}",
        "adaptiveFormats": [translate_adaptive_format(f) for f in list_of(dig(streaming, "adaptive_formats"))],
        "formatStreams": [translate_format_stream(f) for f in list_of(dig(streaming, "formats"))],
        "captions": [],
        "recommendedVideos": translate_related_items(related),
        "playabilityStatus": _str(dig(playability, "status")) or "OK",
        "errorMessage": playability_error(playability),
    }
