"""Tests for StreamingProxy."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest
import respx

from tubegate.proxy.streaming import RelayResponse, StreamingProxy

MEDIA_URL = "https://media.test/videoplayback?id=1"


@pytest.fixture
async def proxy() -> AsyncIterator[StreamingProxy]:
    proxy = StreamingProxy(timeout=5.0, user_agent="test-agent", image_max_age=86400)
    await proxy.start()
    yield proxy
    await proxy.close()


async def _body(response) -> bytes:
    chunks = [chunk async for chunk in response.body_iterator]
    return b"".join(c if isinstance(c, bytes) else c.encode() for c in chunks)


class TestRelayMedia:
    @respx.mock
    async def test_range_passthrough(self, proxy: StreamingProxy) -> None:
        route = respx.get(MEDIA_URL).mock(
            return_value=httpx.Response(
                206,
                headers={"Content-Range": "bytes 100-199/500", "Content-Type": "video/webm", "Accept-Ranges": "bytes"},
                content=b"x" * 100,
            )
        )

        response = await proxy.relay_media(MEDIA_URL, "bytes=100-199")

        sent = route.calls.last.request
        assert sent.headers["range"] == "bytes=100-199"
        assert sent.headers["user-agent"] == "test-agent"
        assert sent.headers["accept-encoding"] == "identity"
        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 100-199/500"
        assert response.headers["content-length"] == "100"
        assert response.headers["content-type"] == "video/webm"
        assert response.headers["accept-ranges"] == "bytes"
        assert await _body(response) == b"x" * 100

    @respx.mock
    async def test_no_range_header_forwarded_when_absent(self, proxy: StreamingProxy) -> None:
        route = respx.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=b"abc"))

        response = await proxy.relay_media(MEDIA_URL)

        assert "range" not in route.calls.last.request.headers
        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert "accept-ranges" not in response.headers

    @respx.mock
    async def test_security_headers_dropped(self, proxy: StreamingProxy) -> None:
        respx.get(MEDIA_URL).mock(
            return_value=httpx.Response(
                200,
                headers={
                    "Content-Security-Policy": "default-src 'none'",
                    "X-Frame-Options": "DENY",
                    "Access-Control-Allow-Origin": "https://origin.test",
                },
                content=b"abc",
            )
        )

        response = await proxy.relay_media(MEDIA_URL)

        assert "content-security-policy" not in response.headers
        assert "x-frame-options" not in response.headers
        assert "access-control-allow-origin" not in response.headers

    @respx.mock
    async def test_timeout_maps_to_504(self, proxy: StreamingProxy) -> None:
        respx.get(MEDIA_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        response = await proxy.relay_media(MEDIA_URL, "bytes=0-1")

        assert response.status_code == 504
        assert b'"error"' in response.body

    @respx.mock
    async def test_connect_error_maps_to_502(self, proxy: StreamingProxy) -> None:
        respx.get(MEDIA_URL).mock(side_effect=httpx.ConnectError("refused"))

        response = await proxy.relay_media(MEDIA_URL)

        assert response.status_code == 502
        assert b"refused" in response.body

    @respx.mock
    async def test_upstream_error_status_relayed(self, proxy: StreamingProxy) -> None:
        respx.get(MEDIA_URL).mock(return_value=httpx.Response(403, content=b"denied"))

        response = await proxy.relay_media(MEDIA_URL)

        assert response.status_code == 403


class TestRelayImage:
    @respx.mock
    async def test_success_sets_cache_headers(self, proxy: StreamingProxy) -> None:
        respx.get("https://img.test/a.jpg").mock(
            return_value=httpx.Response(200, headers={"Content-Type": "image/webp"}, content=b"img")
        )

        response = await proxy.relay_image("https://img.test/a.jpg")

        assert response.status_code == 200
        assert response.body == b"img"
        assert response.headers["content-type"] == "image/webp"
        assert response.headers["cache-control"] == "public, max-age=86400"

    @respx.mock
    async def test_upstream_error_becomes_404(self, proxy: StreamingProxy) -> None:
        respx.get("https://img.test/missing.jpg").mock(return_value=httpx.Response(500, content=b"trace"))

        response = await proxy.relay_image("https://img.test/missing.jpg")

        assert response.status_code == 404
        assert b"trace" not in response.body

    @respx.mock
    async def test_falls_back_to_next_candidate(self, proxy: StreamingProxy) -> None:
        respx.get("https://first.test/a").mock(side_effect=httpx.ConnectError("down"))
        respx.get("https://second.test/a").mock(return_value=httpx.Response(200, content=b"ok"))

        response = await proxy.relay_image(["https://first.test/a", "https://second.test/a"])

        assert response.status_code == 200
        assert response.body == b"ok"


class TestRelayManifest:
    @respx.mock
    async def test_base_urls_rewritten(self, proxy: StreamingProxy) -> None:
        respx.get("https://manifest.test/m.mpd").mock(
            return_value=httpx.Response(200, text="<MPD><BaseURL>https://rr.test/seg</BaseURL></MPD>")
        )

        response = await proxy.relay_manifest("https://manifest.test/m.mpd")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/dash+xml")
        assert b"<BaseURL>/videoplayback?url=" in response.body

    @respx.mock
    async def test_fetch_failure_is_502(self, proxy: StreamingProxy) -> None:
        respx.get("https://manifest.test/m.mpd").mock(side_effect=httpx.ConnectError("down"))

        response = await proxy.relay_manifest("https://manifest.test/m.mpd")

        assert response.status_code == 502


class TestLifecycle:
    @respx.mock
    async def test_lazy_start(self) -> None:
        respx.get("https://img.test/a.jpg").mock(return_value=httpx.Response(200, content=b"img"))
        proxy = StreamingProxy()
        try:
            response = await proxy.relay_image("https://img.test/a.jpg")
            assert response.status_code == 200
        finally:
            await proxy.close()


class _TrackedStream(httpx.AsyncByteStream):
    """Upstream body that records whether it was closed."""

    def __init__(self, chunks: list[bytes], *, fail_after: bool = False) -> None:
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        if self.fail_after:
            raise httpx.ReadError("connection reset")

    async def aclose(self) -> None:
        self.closed = True


def _http_scope() -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/videoplayback",
        "headers": [],
    }


async def _never_disconnect() -> dict:
    await asyncio.Event().wait()
    return {"type": "http.disconnect"}


class TestRelayMediaClosing:
    async def test_upstream_closed_after_full_body(self) -> None:
        stream = _TrackedStream([b"abc"])
        proxy = StreamingProxy(transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=stream)))
        sent: list[dict] = []

        async def send(message: dict) -> None:
            sent.append(message)

        try:
            response = await proxy.relay_media(MEDIA_URL)
            assert isinstance(response, RelayResponse)
            await response(_http_scope(), _never_disconnect, send)
        finally:
            await proxy.close()

        assert stream.closed
        assert b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body") == b"abc"

    async def test_read_failure_after_first_chunk_aborts_and_closes(self) -> None:
        streams: list[_TrackedStream] = []

        def handler(request: httpx.Request) -> httpx.Response:
            stream = _TrackedStream([b"first"], fail_after=not streams)
            streams.append(stream)
            return httpx.Response(200, stream=stream)

        proxy = StreamingProxy(transport=httpx.MockTransport(handler))
        sent: list[dict] = []

        async def send(message: dict) -> None:
            sent.append(message)

        try:
            response = await proxy.relay_media(MEDIA_URL)
            with pytest.raises(Exception):
                await response(_http_scope(), _never_disconnect, send)

            assert streams[0].closed
            assert sent[0]["type"] == "http.response.start"
            assert sent[1]["body"] == b"first"

            # The proxy keeps serving after an aborted relay.
            again = await proxy.relay_media(MEDIA_URL)
            assert again.status_code == 200
            await again(_http_scope(), _never_disconnect, send)
            assert streams[1].closed
        finally:
            await proxy.close()

    async def test_client_disconnect_closes_upstream(self) -> None:
        stream = _TrackedStream([b"a", b"b", b"c"])
        proxy = StreamingProxy(transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=stream)))

        async def send(message: dict) -> None:
            if message["type"] == "http.response.body":
                raise OSError("client went away")

        try:
            response = await proxy.relay_media(MEDIA_URL)
            with pytest.raises(Exception):
                await response(_http_scope(), _never_disconnect, send)
        finally:
            await proxy.close()

        assert stream.closed
