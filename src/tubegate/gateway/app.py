"""FastAPI application factory for the gateway."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tubegate.cache.coordinator import CacheCoordinator
from tubegate.config import Settings, get_settings
from tubegate.gateway.errors import register_exception_handlers
from tubegate.gateway.lyrics_routes import router as lyrics_router
from tubegate.gateway.media_routes import router as media_router
from tubegate.gateway.middleware import CorsMiddleware, ErrorBoundaryMiddleware
from tubegate.gateway.routes import router as api_router
from tubegate.lyrics.lrclib import LrclibClient
from tubegate.proxy.streaming import StreamingProxy
from tubegate.upstream.interfaces import UpstreamClient
from tubegate.upstream.loader import load_upstream

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the cache sweepers and the proxy client; load the upstream client."""
    settings: Settings = app.state.settings
    cache: CacheCoordinator = app.state.cache
    proxy: StreamingProxy = app.state.proxy

    if app.state.upstream is None and settings.upstream_factory:
        app.state.upstream = await load_upstream(settings.upstream_factory)

    cache.start()
    await proxy.start()
    logger.info("gateway ready, cache dir %s", cache.durable.cache_dir)
    try:
        yield
    finally:
        await proxy.close()
        await cache.aclose()


def create_app(
    settings: Settings | None = None,
    upstream: UpstreamClient | None = None,
    lrclib: LrclibClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        upstream: Upstream client. When omitted it is loaded at startup from
            ``settings.upstream_factory``.
        lrclib: Lyrics client; built from settings when omitted.
    """
    settings = settings or get_settings()

    app = FastAPI(title="tubegate", version=settings.version, lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = CacheCoordinator.from_settings(settings)
    app.state.proxy = StreamingProxy.from_settings(settings)
    app.state.upstream = upstream
    app.state.lrclib = lrclib or LrclibClient(settings.lrclib_url, timeout=settings.lrclib_timeout)

    register_exception_handlers(app)
    # Last added runs outermost: CORS wraps the error boundary so 500s carry CORS headers too.
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(CorsMiddleware)
    app.include_router(api_router)
    app.include_router(lyrics_router)
    app.include_router(media_router)
    return app
