"""Streaming relay of images, manifests and range-aware media from upstream hosts."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from tubegate.config import Settings
from tubegate.translator.dash import rewrite_manifest_base_urls

logger = logging.getLogger(__name__)

_DEFAULT_IMAGE_TYPE = "image/jpeg"
_DEFAULT_MEDIA_TYPE = "video/mp4"
_DASH_TYPE = "application/dash+xml"

# Only these upstream response headers reach the client; everything else
# (CSP, X-Frame-Options, cookies, CORS) is dropped.
_FORWARDED_MEDIA_HEADERS = ("content-length", "content-range", "accept-ranges")


class StreamingProxy:
    """Relays upstream responses to the client through one pooled HTTP client.

    Media bodies are never buffered: bytes are forwarded as they arrive and
    the upstream connection is closed when the client response finishes or
    the client goes away. Nothing is retried.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        user_agent: str = "",
        image_max_age: int = 86400,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._user_agent = user_agent
        self._image_max_age = image_max_age
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> StreamingProxy:
        return cls(
            timeout=settings.proxy_timeout,
            user_agent=settings.proxy_user_agent,
            image_max_age=settings.image_max_age,
        )

    async def start(self) -> None:
        """Initialize the persistent HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the persistent HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.start()
        assert self._client is not None
        return self._client

    # ── Images ─────────────────────────────────────────────────

    async def relay_image(self, urls: str | Iterable[str]) -> Response:
        """Fetch an image, trying each candidate URL in order.

        The first 2xx answer is relayed with long-lived cache headers. When
        every candidate fails the client gets a bare 404; upstream error
        bodies are never passed through.
        """
        candidates = [urls] if isinstance(urls, str) else list(urls)
        client = await self._get_client()
        for url in candidates:
            try:
                resp = await client.get(url)
            except httpx.HTTPError as exc:
                logger.info("image fetch failed for %s: %s", url, exc)
                continue
            if resp.status_code >= 400:
                logger.info("image upstream %s returned %d", url, resp.status_code)
                continue
            return Response(
                content=resp.content,
                status_code=resp.status_code,
                media_type=resp.headers.get("content-type", _DEFAULT_IMAGE_TYPE),
                headers={"Cache-Control": f"public, max-age={self._image_max_age}"},
            )
        return Response(content=b"Not found", status_code=404, media_type="text/plain")

    # ── Manifests ──────────────────────────────────────────────

    async def relay_manifest(self, url: str) -> Response:
        """Fetch a DASH manifest and point its segment URLs at the media proxy."""
        client = await self._get_client()
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            logger.error("manifest fetch failed for %s: %s", url[:80], exc)
            return JSONResponse(status_code=502, content={"error": "Manifest fetch failed"})
        return Response(
            content=rewrite_manifest_base_urls(resp.text),
            status_code=resp.status_code,
            media_type=_DASH_TYPE,
            headers={"Cache-Control": "no-cache"},
        )

    # ── Media ──────────────────────────────────────────────────

    async def relay_media(self, url: str, range_header: str | None = None) -> Response:
        """Stream a media resource, honouring an inbound ``Range`` header.

        Args:
            url: Decoded upstream media URL.
            range_header: The client's ``Range`` header, forwarded verbatim.

        Returns:
            A streaming response with the upstream status and range headers,
            or a JSON error response (504 on timeout, 502 on any other
            connection failure) when upstream never answered.
        """
        headers = {"User-Agent": self._user_agent, "Accept-Encoding": "identity"}
        if range_header:
            headers["Range"] = range_header

        client = await self._get_client()
        try:
            upstream = await client.send(client.build_request("GET", url, headers=headers), stream=True)
        except httpx.TimeoutException as exc:
            logger.error("media upstream timed out for %s: %s", url[:80], exc)
            return JSONResponse(status_code=504, content={"error": "Upstream timeout"})
        except httpx.HTTPError as exc:
            logger.error("media upstream failed for %s: %s", url[:80], exc)
            return JSONResponse(status_code=502, content={"error": str(exc) or "Upstream connection failed"})

        logger.info("media relay %s -> %d (range=%s)", url[:80], upstream.status_code, range_header)
        response_headers = {"Content-Type": upstream.headers.get("content-type", _DEFAULT_MEDIA_TYPE)}
        for name in _FORWARDED_MEDIA_HEADERS:
            if name in upstream.headers:
                response_headers[name.title()] = upstream.headers[name]

        return RelayResponse(upstream, url, status_code=upstream.status_code, headers=response_headers)


class RelayResponse(StreamingResponse):
    """Streams an upstream body and closes the upstream however the send ends.

    Completion, a failed upstream read and a client disconnect all release
    the upstream connection before the ASGI call returns.
    """

    def __init__(self, upstream: httpx.Response, url: str, **kwargs: Any) -> None:
        super().__init__(_relay_body(upstream, url), **kwargs)
        self.upstream = upstream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


async def _relay_body(upstream: httpx.Response, url: str) -> AsyncIterator[bytes]:
    """Yield raw upstream bytes; always closes the upstream response.

    A read failure after the first byte cannot be reported to the client any
    more, so it is logged and re-raised to abort the connection.
    """
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as exc:
        logger.warning("media stream aborted for %s: %s", url[:80], exc)
        raise
    finally:
        await upstream.aclose()
