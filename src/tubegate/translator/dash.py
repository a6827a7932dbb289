"""DASH manifest generation and rewriting."""

from __future__ import annotations

import re
from typing import Any

from tubegate.translator.parsing import dig, int_of, list_of
from tubegate.translator.urls import encode_proxy_url, to_proxy_url

_CODECS = re.compile(r'codecs="([^"]+)"')
_BASE_URL = re.compile(r"<BaseURL>([^<]+)</BaseURL>")

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(text: Any) -> str:
    if not isinstance(text, str) or not text:
        return ""
    for raw, escaped in _XML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def iso_duration(seconds: Any) -> str:
    """``3661`` -> ``"PT1H1M1S"``."""
    total = max(0, int_of(seconds))
    return f"PT{total // 3600}H{total % 3600 // 60}M{total % 60}S"


def _mime(fmt: Any) -> str:
    mime = dig(fmt, "mime_type")
    return mime if isinstance(mime, str) else ""


def _representation(fmt: Any, *, video: bool) -> str:
    match = _CODECS.search(_mime(fmt))
    codecs = match.group(1) if match else ""
    size = f' width="{int_of(dig(fmt, "width"))}" height="{int_of(dig(fmt, "height"))}"' if video else ""
    index_range = f"{int_of(dig(fmt, 'index_range', 'start'))}-{int_of(dig(fmt, 'index_range', 'end'))}"
    init_range = f"{int_of(dig(fmt, 'init_range', 'start'))}-{int_of(dig(fmt, 'init_range', 'end'))}"
    return (
        f'      <Representation id="{int_of(dig(fmt, "itag"))}" bandwidth="{int_of(dig(fmt, "bitrate"))}"'
        f'{size} codecs="{escape_xml(codecs)}">\n'
        f"        <BaseURL>{escape_xml(to_proxy_url(dig(fmt, 'url')))}</BaseURL>\n"
        f'        <SegmentBase indexRange="{index_range}">\n'
        f'          <Initialization range="{init_range}"/>\n'
        "        </SegmentBase>\n"
        "      </Representation>\n"
    )


def _adaptation_set(formats: list[Any], mime_type: str, *, video: bool) -> str:
    if not formats:
        return ""
    body = "".join(_representation(fmt, video=video) for fmt in formats)
    return f'    <AdaptationSet mimeType="{mime_type}" subsegmentAlignment="true">\n{body}    </AdaptationSet>\n'


def generate_dash_manifest(adaptive_formats: Any, duration: Any) -> str:
    """Build a static on-demand MPD from adaptive formats.

    Video formats go into one ``video/mp4`` adaptation set and audio formats
    into one ``audio/mp4`` set; every ``BaseURL`` points at the media proxy.
    An empty format list still yields a well-formed MPD with an empty period.
    """
    formats = list_of(adaptive_formats)
    video = [f for f in formats if _mime(f).startswith("video/")]
    audio = [f for f in formats if _mime(f).startswith("audio/")]
    period = iso_duration(duration)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" profiles="urn:mpeg:dash:profile:isoff-on-demand:2011"'
        f' type="static" mediaPresentationDuration="{period}" minBufferTime="PT1.5S">\n'
        f'  <Period duration="{period}">\n'
        f"{_adaptation_set(video, 'video/mp4', video=True)}"
        f"{_adaptation_set(audio, 'audio/mp4', video=False)}"
        "  </Period>\n"
        "</MPD>\n"
    )


def rewrite_manifest_base_urls(manifest: str) -> str:
    """Point every ``<BaseURL>`` of an upstream manifest at the media proxy."""

    def _replace(match: re.Match[str]) -> str:
        return f"<BaseURL>/videoplayback?url={encode_proxy_url(match.group(1))}</BaseURL>"

    return _BASE_URL.sub(_replace, manifest)
