"""Shared pytest fixtures for the tubegate test suite."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from tubegate.config import Settings


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Return a Settings instance with test defaults."""
    return Settings(
        cache_dir=str(tmp_path / "cache"),
        memory_max_entries=100,
        proxy_timeout=5.0,
        lrclib_url="https://lrclib.test",
        upstream_factory="",
    )


@pytest.fixture()
def mock_channel() -> AsyncMock:
    """Mock channel handle with uploads only."""
    channel = AsyncMock()
    channel.metadata = {
        "title": "Test Channel",
        "description": "About us",
        "subscriber_count": "1.2M subscribers",
        "avatar": [{"url": "https://yt3.ggpht.com/avatar=s176"}],
        "banner": [],
    }
    channel.has_videos = True
    channel.has_shorts = False
    channel.has_live_streams = False
    channel.has_playlists = False
    channel.has_community = False
    channel.get_videos = AsyncMock(
        return_value=SimpleNamespace(
            videos=[{"id": "up1", "title": {"text": "Upload one"}, "duration": {"seconds": 61}}],
            has_continuation=False,
        )
    )
    return channel


@pytest.fixture()
def mock_upstream(mock_channel: AsyncMock) -> AsyncMock:
    """Mock upstream video-platform client."""
    mock = AsyncMock()
    mock.search = AsyncMock(return_value={"results": []})
    mock.get_search_suggestions = AsyncMock(return_value=[])
    mock.get_basic_info = AsyncMock(return_value={})
    mock.get_info = AsyncMock(return_value={})
    mock.get_channel = AsyncMock(return_value=mock_channel)
    mock.get_trending = AsyncMock(return_value={"videos": []})
    return mock
