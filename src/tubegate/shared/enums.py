"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class ContentClass(str, Enum):
    """Closed set of cached payload categories.

    The value doubles as the key namespace: a key ``"video-metadata:abc"``
    belongs to ``VIDEO_METADATA``.
    """

    SEARCH = "search"
    VIDEO_METADATA = "video-metadata"
    CHANNEL_METADATA = "channel-metadata"
    LYRICS = "lyrics"
