"""Tests for the nekos.moe and waifu.im clients."""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from kawaii_bot.providers import NSFWMode, NekosClient, WaifuClient
from kawaii_bot.utils.exceptions import ImageAPIError


class FakeResponse:

    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays one canned response or raises one error per request."""

    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def request(self, method, url, params=None, json=None):
        self.requests.append((method, url, params, json))
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self) -> None:
        self.closed = True


def with_session(client, session: FakeSession):
    client._ensure_session = AsyncMock(return_value=session)
    return client


class TestNekosClient:

    def test_image_url(self, provider_config):
        client = NekosClient(provider_config)

        assert client.image_url("abc123") == "https://nekos.test/image/abc123.jpg"

    async def test_random_images_request(self, provider_config):
        client = NekosClient(provider_config)
        client._request_json = AsyncMock(return_value={
            "images": [
                {"id": "a1", "tags": ["cat ears"], "nsfw": False, "createdAt": "2020-01-01"},
                {"id": "b2", "tags": [], "nsfw": True},
            ]
        })

        images = await client.get_random_images(count=2, nsfw=False)

        client._request_json.assert_awaited_once_with(
            "GET",
            "https://nekos.test/api/v1/random/image",
            params={"count": "2", "nsfw": "false"},
        )
        assert [image.id for image in images] == ["a1", "b2"]
        assert images[0].created_at == "2020-01-01"

    async def test_mixed_request_omits_nsfw(self, provider_config):
        client = NekosClient(provider_config)
        client._request_json = AsyncMock(return_value={"images": []})

        assert await client.get_random_images(count=1, nsfw=None) == []

        _, kwargs = client._request_json.call_args
        assert kwargs["params"] == {"count": "1"}

    async def test_get_image(self, provider_config):
        client = NekosClient(provider_config)
        client._request_json = AsyncMock(return_value={"image": {"id": "zz", "likes": 4}})

        image = await client.get_image("zz")

        assert image.likes == 4
        client._request_json.assert_awaited_once_with("GET", "https://nekos.test/api/v1/images/zz")

    async def test_search_images(self, provider_config):
        client = NekosClient(provider_config)
        client._request_json = AsyncMock(return_value={"images": [{"id": "s1"}]})

        images = await client.search_images(["maid"], count=3, nsfw=False)

        assert images[0].id == "s1"
        client._request_json.assert_awaited_once_with(
            "POST",
            "https://nekos.test/api/v1/images/search",
            json_body={"tags": ["maid"], "limit": 3, "nsfw": False},
        )

    async def test_malformed_payload_raises(self, provider_config):
        client = NekosClient(provider_config)
        client._request_json = AsyncMock(return_value={"images": [{"tags": []}]})

        with pytest.raises(ImageAPIError, match="Unexpected nekos.moe response"):
            await client.get_random_images()


class TestWaifuClient:

    async def test_images_request(self, provider_config):
        client = WaifuClient(provider_config)
        client._request_json = AsyncMock(return_value={
            "items": [{"id": 42, "url": "https://waifu.test/42.gif", "extension": ".gif", "isAnimated": True}],
            "pageNumber": 1,
        })

        images = await client.get_images(count=1, nsfw=NSFWMode.NSFW, animated=True)

        client._request_json.assert_awaited_once_with(
            "GET",
            "https://waifu.test/images",
            params={"IsNsfw": "True", "pageSize": "1", "IsAnimated": "True"},
        )
        assert images[0].is_animated
        assert images[0].content_type == "image/gif"

    async def test_count_is_clamped(self, provider_config):
        client = WaifuClient(provider_config)
        client._request_json = AsyncMock(return_value={"items": []})

        await client.get_images(count=50, nsfw=NSFWMode.ALL)

        _, kwargs = client._request_json.call_args
        assert kwargs["params"] == {"IsNsfw": "All", "pageSize": "10"}


class TestErrorMapping:

    async def test_non_200_raises(self, provider_config):
        session = FakeSession(response=FakeResponse(503, b"maintenance"))
        client = with_session(WaifuClient(provider_config), session)

        with pytest.raises(ImageAPIError) as exc_info:
            await client.get_images()

        assert exc_info.value.context["status_code"] == 503
        assert exc_info.value.context["body"] == "maintenance"

    async def test_network_error_raises(self, provider_config):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        client = with_session(NekosClient(provider_config), session)

        with pytest.raises(ImageAPIError, match="Failed to communicate with nekos API") as exc_info:
            await client.download_image("abc")

        assert isinstance(exc_info.value.original_error, aiohttp.ClientConnectionError)

    async def test_timeout_raises(self, provider_config):
        session = FakeSession(error=asyncio.TimeoutError())
        client = with_session(NekosClient(provider_config), session)

        with pytest.raises(ImageAPIError, match="timed out"):
            await client.get_random_images()

    async def test_invalid_json_raises(self, provider_config):
        session = FakeSession(response=FakeResponse(200, b"<html>"))
        client = with_session(NekosClient(provider_config), session)

        with pytest.raises(ImageAPIError, match="Failed to decode"):
            await client.get_random_images()

    async def test_download_returns_bytes(self, provider_config):
        session = FakeSession(response=FakeResponse(200, b"\xff\xd8jpeg"))
        client = with_session(NekosClient(provider_config), session)

        data = await client.download_image("abc")

        assert data == b"\xff\xd8jpeg"
        assert session.requests[0][1] == "https://nekos.test/image/abc.jpg"

    async def test_closed_client_refuses_requests(self, provider_config):
        client = NekosClient(provider_config)
        await client.close()

        with pytest.raises(ImageAPIError, match="closed"):
            await client.get_random_images()
