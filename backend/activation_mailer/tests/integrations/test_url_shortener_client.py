"""
Unit tests for the myoncare URL shortener client.

Tests cover:
- Request payload and bearer auth
- Click count clamping
- Empty token short-circuit
- Every failure mode returning ""
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from activation_mailer.integrations.myoncare.client import DEFAULT_SHORTENER_URL, UrlShortenerClient
from activation_mailer.integrations.myoncare.models import ShortenRequest, clamp_clicks
from activation_mailer.integrations.myoncare.token_cache import TokenCache

LONG_URL = "https://app.myoncare.care/activate?pathway=back"


@pytest.fixture
def token_cache():
    cache = MagicMock(spec=TokenCache)
    cache.get_token = AsyncMock(return_value="access-token")
    return cache


@pytest.fixture
def client(token_cache, monkeypatch):
    monkeypatch.delenv("MYONCARE_SHORTENER_URL", raising=False)
    return UrlShortenerClient(token_cache)


class TestShortenRequest:

    def test_payload_field_names(self):
        request = ShortenRequest(long_url=LONG_URL, max_clicks_count=3)
        assert request.to_dict() == {
            "longURL": LONG_URL,
            "firebasePatientId": "0",
            "carepathwayId": 0,
            "caretaskId": 0,
            "maxClicksCount": 3,
        }

    @pytest.mark.parametrize("value,expected", [
        (3, 3), ("2", 2), (0, 1), (-4, 1), (None, 1), ("abc", 1), ("", 1),
    ])
    def test_clamp_clicks(self, value, expected):
        assert clamp_clicks(value) == expected


class TestShorten:

    @pytest.mark.asyncio
    async def test_success(self, client):
        with patch.object(client._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = httpx.Response(200, json={"shortURL": "https://myon.link/abc"})
            result = await client.shorten(LONG_URL, max_clicks_count=2)

        assert result == "https://myon.link/abc"
        args, kwargs = mock_post.call_args
        assert args[0] == DEFAULT_SHORTENER_URL
        assert kwargs["json"]["maxClicksCount"] == 2
        assert kwargs["json"]["longURL"] == LONG_URL
        assert kwargs["headers"]["Authorization"] == "Bearer access-token"

    @pytest.mark.asyncio
    async def test_clicks_clamped_to_one(self, client):
        with patch.object(client._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = httpx.Response(200, json={"shortURL": "https://myon.link/abc"})
            await client.shorten(LONG_URL, max_clicks_count=0)

        assert mock_post.call_args.kwargs["json"]["maxClicksCount"] == 1

    @pytest.mark.asyncio
    async def test_empty_token_skips_request(self, client, token_cache):
        token_cache.get_token.return_value = ""
        with patch.object(client._client, "post", new_callable=AsyncMock) as mock_post:
            assert await client.shorten(LONG_URL) == ""
        mock_post.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="server error"),
        httpx.Response(403, json={"error": "forbidden"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"url": "missing-field"}),
    ])
    async def test_bad_responses_return_empty(self, client, response):
        with patch.object(client._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response
            assert await client.shorten(LONG_URL) == ""

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty(self, client):
        with patch.object(client._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.ConnectError("connection refused")
            assert await client.shorten(LONG_URL) == ""

    @pytest.mark.asyncio
    async def test_shares_one_token_cache(self, token_cache):
        first = UrlShortenerClient(token_cache)
        second = UrlShortenerClient(token_cache)
        assert first.token_cache is second.token_cache
