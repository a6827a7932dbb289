"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway configuration loaded from environment variables."""

    model_config = {"env_prefix": "TUBEGATE_", "frozen": True}

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    version: str = "1.0.0"
    log_level: str = "INFO"

    # Cache
    cache_dir: str = str(Path.home() / ".tubegate-cache")
    memory_max_entries: int = 1000
    memory_sweep_interval: float = 60.0
    durable_cleanup_interval: float = 3600.0

    # Streaming proxy
    proxy_timeout: float = 30.0
    proxy_user_agent: str = "com.google.android.youtube/19.02.39 (Linux; U; Android 14) gzip"
    image_max_age: int = 86400

    # Lyrics (LRCLIB)
    lrclib_url: str = "https://lrclib.net"
    lrclib_timeout: float = 15.0

    # Upstream client, as "package.module:factory". Empty disables upstream routes.
    upstream_factory: str = ""


def get_settings() -> Settings:
    """Settings read from the environment; tests construct ``Settings`` directly."""
    return Settings()
