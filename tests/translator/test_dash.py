"""Tests for DASH manifest generation and rewriting."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from tubegate.translator.dash import escape_xml, generate_dash_manifest, iso_duration, rewrite_manifest_base_urls
from tubegate.translator.urls import decode_proxy_url

MPD_NS = "{urn:mpeg:dash:schema:mpd:2011}"

ADAPTIVE_FORMATS = [
    {
        "url": "https://example.com/video.mp4?a=1&b=2",
        "itag": 137,
        "mime_type": 'video/mp4; codecs="avc1.640028"',
        "bitrate": 4000000,
        "width": 1920,
        "height": 1080,
        "init_range": {"start": 0, "end": 740},
        "index_range": {"start": 741, "end": 1500},
    },
    {
        "url": "https://example.com/audio.mp4",
        "itag": 140,
        "mime_type": 'audio/mp4; codecs="mp4a.40.2"',
        "bitrate": 128000,
        "init_range": {"start": 0, "end": 640},
        "index_range": {"start": 641, "end": 1200},
    },
    {"url": "https://example.com/sub.vtt", "mime_type": "text/vtt"},
]


class TestGenerateManifest:
    def test_structure(self) -> None:
        root = ET.fromstring(generate_dash_manifest(ADAPTIVE_FORMATS, 300))
        sets = root.findall(f"{MPD_NS}Period/{MPD_NS}AdaptationSet")
        assert [s.get("mimeType") for s in sets] == ["video/mp4", "audio/mp4"]

        video = sets[0].find(f"{MPD_NS}Representation")
        assert video is not None
        assert video.get("id") == "137"
        assert video.get("width") == "1920"
        assert video.get("codecs") == "avc1.640028"
        assert video.find(f"{MPD_NS}SegmentBase").get("indexRange") == "741-1500"

        audio = sets[1].find(f"{MPD_NS}Representation")
        assert audio is not None
        assert audio.get("width") is None

    def test_base_urls_point_at_proxy(self) -> None:
        root = ET.fromstring(generate_dash_manifest(ADAPTIVE_FORMATS, 300))
        base_url = root.find(f".//{MPD_NS}BaseURL")
        assert base_url is not None
        assert base_url.text is not None
        encoded = base_url.text.split("url=", 1)[1]
        assert decode_proxy_url(encoded) == "https://example.com/video.mp4?a=1&b=2"

    def test_duration(self) -> None:
        assert 'mediaPresentationDuration="PT1H1M1S"' in generate_dash_manifest([], 3661)
        assert iso_duration(None) == "PT0H0M0S"

    def test_empty_formats_still_valid(self) -> None:
        root = ET.fromstring(generate_dash_manifest(None, 0))
        assert root.find(f"{MPD_NS}Period") is not None
        assert root.findall(f".//{MPD_NS}AdaptationSet") == []


class TestEscapeAndRewrite:
    def test_escape_xml(self) -> None:
        assert escape_xml("a&b<c>\"d'") == "a&amp;b&lt;c&gt;&quot;d&apos;"
        assert escape_xml("") == ""
        assert escape_xml(None) == ""

    def test_rewrite_base_urls(self) -> None:
        manifest = (
            "<MPD><BaseURL>https://rr1.googlevideo.com/videoplayback?id=abc</BaseURL>"
            "<BaseURL>https://rr2.googlevideo.com/videoplayback?id=def</BaseURL></MPD>"
        )
        rewritten = rewrite_manifest_base_urls(manifest)
        assert rewritten.count("<BaseURL>/videoplayback?url=") == 2
        assert "googlevideo.com" not in rewritten
