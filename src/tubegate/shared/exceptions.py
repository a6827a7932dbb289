"""Hierarchical exception types for the tubegate gateway."""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for all tubegate errors."""


# ── Upstream ───────────────────────────────────────────────────


class UpstreamError(GatewayError):
    """An upstream service failed or returned an unusable response."""


class UpstreamUnavailableError(UpstreamError):
    """No upstream client is configured for this process."""


class LyricsError(UpstreamError):
    """LRCLIB request failed."""


# ── Client input ───────────────────────────────────────────────


class InvalidInputError(GatewayError):
    """Malformed client input (missing parameter, undecodable URL)."""
