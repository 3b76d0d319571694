"""
Async client for the YouTube Data API (v3), used to turn a video or playlist
URL into a list of downloadable items.
"""

import asyncio
import logging
import time
from typing import Any, AsyncGenerator, Dict, List, Optional

import aiohttp

from tubezip.exceptions import ResolverError
from tubezip.models.item import WATCH_URL, Item, ResolvedMedia
from tubezip.utils.url import parse_youtube_url

log = logging.getLogger(__name__)

UNTITLED = "Untitled"


def _thumbnail(snippet: Dict[str, Any]) -> Optional[str]:
    thumbnails = snippet.get("thumbnails") or {}
    for size in ("medium", "default"):
        if url := (thumbnails.get(size) or {}).get("url"):
            return url
    return None


def _make_item(video_id: str, snippet: Dict[str, Any]) -> Item:
    return Item(
        id=video_id,
        title=snippet.get("title") or UNTITLED,
        thumbnail=_thumbnail(snippet),
        url=WATCH_URL.format(video_id=video_id),
    )


class YouTubeClient:
    """
    Resolves YouTube URLs through the Data API.

    Playlists are paginated by the API; `resolve` drains every page before
    returning.
    """

    BASE_URL = "https://www.googleapis.com/youtube/v3/"
    PAGE_SIZE = 50

    def __init__(self, api_key: str, base_url: str | None = None):
        """
        Initializes the API client.

        Args:
            api_key: A YouTube Data API key. Without one every lookup fails.
            base_url: Overrides the API root, mainly for tests.
        """
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept-Encoding": "gzip, deflate"},
                timeout=aiohttp.ClientTimeout(total=30, connect=10),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def api_call(self, endpoint: str, **params: Any) -> Dict[str, Any]:
        """
        Makes a GET request to an API endpoint.

        Raises:
            ResolverError: On missing credentials, HTTP errors or network failures.
        """
        if not self.api_key:
            raise ResolverError("API key missing.")

        await self._initialize_session()
        query = {k: v for k, v in params.items() if v is not None}
        query["key"] = self.api_key

        start_time = time.monotonic()
        try:
            async with self._session.get(self.base_url + endpoint, params=query) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"API call {endpoint} -> {r.status} ({duration_ms:.0f} ms)")
                r.raise_for_status()
                return await r.json()
        except aiohttp.ClientResponseError as e:
            raise ResolverError(
                f"YouTube API request to '{endpoint}' failed with status {e.status}."
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ResolverError(f"YouTube API request to '{endpoint}' failed: {e}") from e

    async def _yield_paginated(
        self, endpoint: str, **params: Any
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Generator for page-token paginated endpoints.
        """
        page_token = None
        while True:
            response = await self.api_call(
                endpoint, maxResults=self.PAGE_SIZE, pageToken=page_token, **params
            )
            yield response

            page_token = response.get("nextPageToken")
            if not page_token:
                break

    async def fetch_video(self, video_id: str) -> List[Item]:
        data = await self.api_call(
            "videos", id=video_id, part="snippet,contentDetails"
        )
        return [
            _make_item(it["id"], it.get("snippet") or {})
            for it in data.get("items", [])
            if it.get("id")
        ]

    async def fetch_playlist_items(self, playlist_id: str) -> List[Item]:
        items: List[Item] = []
        async for page in self._yield_paginated(
            "playlistItems", playlistId=playlist_id, part="snippet,contentDetails"
        ):
            for it in page.get("items", []):
                snippet = it.get("snippet") or {}
                video_id = (it.get("contentDetails") or {}).get("videoId") or (
                    snippet.get("resourceId") or {}
                ).get("videoId")
                if not video_id:
                    continue
                items.append(_make_item(video_id, snippet))
        log.debug(f"Playlist '{playlist_id}' resolved to {len(items)} items.")
        return items

    async def resolve(self, url: str) -> ResolvedMedia:
        """
        Resolves a video or playlist URL.

        Raises:
            ResolverError: If the URL is not recognized or the lookup fails.
        """
        kind, media_id = parse_youtube_url(url)
        if not self.api_key:
            raise ResolverError("API key missing.")
        if kind == "video":
            return ResolvedMedia(kind="video", items=await self.fetch_video(media_id))
        if kind == "playlist":
            return ResolvedMedia(
                kind="playlist", items=await self.fetch_playlist_items(media_id)
            )
        raise ResolverError("Invalid or unrecognized URL.")
