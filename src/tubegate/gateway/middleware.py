"""ASGI middleware for the gateway: CORS, request logging and the error boundary.

Both middlewares are plain ASGI callables rather than ``BaseHTTPMiddleware``
so that streamed media bodies pass through without being buffered.
"""

from __future__ import annotations

import json
import logging

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Content-Type",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range, Accept-Ranges",
}


class CorsMiddleware:
    """Unrestricted CORS on every response; ``OPTIONS`` on any path is answered 200.

    Upstream CORS headers never survive: ours overwrite them.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        logger.info("%s %s", scope["method"], scope["path"])

        if scope["method"] == "OPTIONS":
            headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in CORS_HEADERS.items()]
            headers.append((b"content-length", b"0"))
            await send({"type": "http.response.start", "status": 200, "headers": headers})
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class ErrorBoundaryMiddleware:
    """Outermost guard: no request failure may escape to the server.

    Before the response has started, an escaping exception becomes a 500
    with ``{"error": <message>}``. Once headers are on the wire nothing can
    be signalled any more, so the error is logged and the connection dropped.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except Exception as exc:
            if response_started:
                logger.warning("error after response start on %s, dropping connection: %s", scope["path"], exc)
                return
            logger.exception("unhandled error on %s %s", scope["method"], scope["path"])
            body = json.dumps({"error": str(exc) or exc.__class__.__name__}).encode("utf-8")
            await send(
                {
                    "type": "http.response.start",
                    "status": 500,
                    "headers": [
                        (b"content-type", b"application/json"),
                        (b"content-length", str(len(body)).encode("latin-1")),
                    ],
                }
            )
            await send({"type": "http.response.body", "body": body})
