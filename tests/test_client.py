"""Tests for the YouTube Data API client against a local fake API."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tubezip.api.client import YouTubeClient
from tubezip.exceptions import ResolverError

PAGES = {
    None: {
        "items": [
            {
                "snippet": {
                    "title": "First",
                    "thumbnails": {"medium": {"url": "https://i.ytimg.com/1.jpg"}},
                },
                "contentDetails": {"videoId": "v1"},
            },
            # Deleted or private entries come back without a video id
            {"snippet": {"title": "Private video"}, "contentDetails": {}},
        ],
        "nextPageToken": "page-2",
    },
    "page-2": {
        "items": [
            {
                "snippet": {
                    "title": "",
                    "resourceId": {"videoId": "v2"},
                    "thumbnails": {"default": {"url": "https://i.ytimg.com/2.jpg"}},
                },
            },
        ],
    },
}


def _fake_api(requests: list) -> web.Application:
    async def playlist_items(request: web.Request) -> web.Response:
        requests.append(dict(request.query))
        if request.query.get("key") != "secret":
            return web.json_response({"error": "forbidden"}, status=403)
        return web.json_response(PAGES[request.query.get("pageToken")])

    async def videos(request: web.Request) -> web.Response:
        requests.append(dict(request.query))
        return web.json_response(
            {"items": [{"id": request.query["id"], "snippet": {"title": "Solo"}}]}
        )

    app = web.Application()
    app.router.add_get("/youtube/v3/playlistItems", playlist_items)
    app.router.add_get("/youtube/v3/videos", videos)
    return app


@pytest.mark.asyncio
async def test_resolve_playlist_follows_pages():
    requests = []
    async with TestServer(_fake_api(requests)) as server:
        client = YouTubeClient("secret", base_url=str(server.make_url("/youtube/v3/")))
        try:
            resolved = await client.resolve(
                "https://www.youtube.com/playlist?list=PL123"
            )
        finally:
            await client.close()

    assert resolved.kind == "playlist"
    assert [item.id for item in resolved.items] == ["v1", "v2"]
    assert resolved.items[0].title == "First"
    assert resolved.items[0].thumbnail == "https://i.ytimg.com/1.jpg"
    assert resolved.items[0].url == "https://www.youtube.com/watch?v=v1"
    assert resolved.items[1].title == "Untitled"
    assert resolved.items[1].thumbnail == "https://i.ytimg.com/2.jpg"

    assert len(requests) == 2
    assert requests[0]["playlistId"] == "PL123"
    assert requests[0]["maxResults"] == "50"
    assert "pageToken" not in requests[0]
    assert requests[1]["pageToken"] == "page-2"


@pytest.mark.asyncio
async def test_resolve_video():
    requests = []
    async with TestServer(_fake_api(requests)) as server:
        client = YouTubeClient("secret", base_url=str(server.make_url("/youtube/v3/")))
        try:
            resolved = await client.resolve("https://youtu.be/abc")
        finally:
            await client.close()

    assert resolved.kind == "video"
    assert [(item.id, item.title) for item in resolved.items] == [("abc", "Solo")]
    assert resolved.items[0].thumbnail is None


@pytest.mark.asyncio
async def test_http_errors_become_resolver_errors():
    async with TestServer(_fake_api([])) as server:
        client = YouTubeClient("wrong", base_url=str(server.make_url("/youtube/v3/")))
        try:
            with pytest.raises(ResolverError, match="403"):
                await client.resolve("https://www.youtube.com/playlist?list=PL123")
        finally:
            await client.close()


@pytest.mark.asyncio
async def test_missing_api_key():
    client = YouTubeClient("")
    with pytest.raises(ResolverError, match="API key missing."):
        await client.resolve("https://youtu.be/abc")


@pytest.mark.asyncio
async def test_unrecognized_url():
    client = YouTubeClient("secret")
    with pytest.raises(ResolverError, match="Invalid or unrecognized URL."):
        await client.resolve("https://example.com/watch?v=abc")
    await client.close()
