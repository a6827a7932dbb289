"""LRCLIB API client for synced lyrics."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tubegate.shared.exceptions import LyricsError

logger = logging.getLogger(__name__)


def lyrics_id(track: str, artist: str) -> str:
    """Cache id for a track/artist pair; case and surrounding space are ignored."""
    return f"{track.lower().strip()}_{artist.lower().strip()}"


class LrclibClient:
    """Look up and search lyrics on an LRCLIB instance."""

    def __init__(self, base_url: str = "https://lrclib.net", *, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def fetch(self, track: str, artist: str, duration: int | None = None) -> dict[str, Any] | None:
        """Fetch the lyrics record for one track.

        Args:
            track: Track name.
            artist: Artist name.
            duration: Track length in seconds; improves matching when given.

        Returns:
            The LRCLIB record, or ``None`` when LRCLIB has no match.

        Raises:
            LyricsError: If the request fails or the response is not a JSON object.
        """
        params: dict[str, Any] = {"track_name": track, "artist_name": artist}
        if duration:
            params["duration"] = duration

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}/api/get", params=params)
                if resp.status_code == 404:
                    logger.info("lrclib has no lyrics for %r by %r", track, artist)
                    return None
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise LyricsError(f"LRCLIB returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise LyricsError(f"LRCLIB request failed: {exc}") from exc
        except ValueError as exc:
            raise LyricsError("Invalid response from LRCLIB") from exc

        if not isinstance(data, dict):
            raise LyricsError("Invalid response from LRCLIB")
        return data

    async def search(self, query: str) -> list[dict[str, Any]]:
        """Free-text search; returns the object entries of LRCLIB's result list.

        Raises:
            LyricsError: If the request fails.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}/api/search", params={"q": query})
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise LyricsError(f"LRCLIB returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise LyricsError(f"LRCLIB request failed: {exc}") from exc
        except ValueError as exc:
            raise LyricsError("Invalid response from LRCLIB") from exc

        results = [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []
        logger.info("lrclib returned %d results for query=%r", len(results), query)
        return results
