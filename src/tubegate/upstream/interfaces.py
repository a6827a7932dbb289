"""Interfaces for the upstream video-platform client.

The client library is a black box. Objects it returns may be mappings or
attribute objects; the translator navigates both.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ChannelHandle(Protocol):
    """A loaded channel page with lazily fetched tabs."""

    metadata: Any
    has_videos: bool
    has_shorts: bool
    has_live_streams: bool
    has_playlists: bool
    has_community: bool

    async def get_videos(self) -> Any:
        """Uploads tab; exposes ``videos``."""
        ...

    async def get_shorts(self) -> Any:
        """Shorts tab; exposes ``videos``."""
        ...

    async def get_live_streams(self) -> Any:
        """Live tab; exposes ``videos``."""
        ...

    async def get_playlists(self) -> Any:
        """Playlists tab; exposes ``playlists``."""
        ...

    async def get_community(self) -> Any:
        """Community tab; exposes ``posts``."""
        ...


@runtime_checkable
class UpstreamClient(Protocol):
    """Protocol for the upstream video-platform API client."""

    async def search(self, query: str, **filters: Any) -> Any:
        """Run a search.

        Args:
            query: Free-text query.
            **filters: Client-specific filters such as ``sort_by``.

        Returns:
            Object exposing ``results``.
        """
        ...

    async def get_search_suggestions(self, query: str) -> list[str]:
        ...

    async def get_basic_info(self, video_id: str) -> Any:
        """Stream-manifest record: ``basic_info``, ``streaming_data``, ``playability_status``."""
        ...

    async def get_info(self, video_id: str) -> Any:
        """Full watch page: ``basic_info``, ``secondary_info``, ``watch_next_feed``."""
        ...

    async def get_channel(self, channel_id: str) -> ChannelHandle:
        ...

    async def get_trending(self) -> Any:
        """Trending page; exposes ``videos``."""
        ...
