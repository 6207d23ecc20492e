"""
Tests for the price snapshot feed (data_feeds.py).

Tests cover:
- Parsing provider payloads, including missing and malformed entries
- HTTP handling with a mocked aiohttp session
"""
from unittest.mock import MagicMock, AsyncMock

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data_feeds import CoinGeckoFeed, PriceFeedError, PriceQuote, parse_simple_price

TOKEN_IDS = {"solana": "SOL", "bonk": "BONK"}


def mock_session(status: int = 200, payload=None, json_error: Exception = None):
    """Build a session whose get() yields a response with the given status/payload."""
    resp = MagicMock()
    resp.status = status
    if json_error is not None:
        resp.json = AsyncMock(side_effect=json_error)
    else:
        resp.json = AsyncMock(return_value=payload)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    return session


class TestParseSimplePrice:
    """Tests for parse_simple_price."""

    def test_full_payload(self):
        data = {
            "solana": {"usd": 142.5, "usd_24h_change": -4.2},
            "bonk": {"usd": 0.0000213, "usd_24h_change": 1.1},
        }
        snapshot = parse_simple_price(data, TOKEN_IDS)
        assert snapshot["SOL"] == PriceQuote(symbol="SOL", price=142.5, change_24h=-4.2)
        assert snapshot["BONK"].price == 0.0000213

    def test_missing_token_is_zero(self):
        snapshot = parse_simple_price({"solana": {"usd": 142.5}}, TOKEN_IDS)
        assert snapshot["SOL"].change_24h == 0.0
        assert snapshot["BONK"].price == 0.0
        assert snapshot["BONK"].change_24h == 0.0

    def test_malformed_values_are_zero(self):
        data = {"solana": {"usd": "n/a", "usd_24h_change": None}, "bonk": "oops"}
        snapshot = parse_simple_price(data, TOKEN_IDS)
        assert snapshot["SOL"].price == 0.0
        assert snapshot["BONK"].price == 0.0

    @pytest.mark.parametrize("payload", [None, [], "error", 42])
    def test_non_object_payload_raises(self, payload):
        with pytest.raises(PriceFeedError):
            parse_simple_price(payload, TOKEN_IDS)


class TestCoinGeckoFeed:
    """Tests for CoinGeckoFeed.fetch_snapshot."""

    @pytest.mark.asyncio
    async def test_fetch_snapshot(self):
        feed = CoinGeckoFeed(token_ids=TOKEN_IDS)
        session = mock_session(payload={"solana": {"usd": 150.0, "usd_24h_change": 2.0}})
        feed._get_session = AsyncMock(return_value=session)

        snapshot = await feed.fetch_snapshot()

        assert snapshot["SOL"].price == 150.0
        assert snapshot["BONK"].price == 0.0
        params = session.get.call_args.kwargs["params"]
        assert params["ids"] == "solana,bonk"
        assert params["vs_currencies"] == "usd"
        assert params["include_24hr_change"] == "true"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        feed = CoinGeckoFeed(token_ids=TOKEN_IDS)
        feed._get_session = AsyncMock(return_value=mock_session(status=429))

        with pytest.raises(PriceFeedError, match="429"):
            await feed.fetch_snapshot()

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        feed = CoinGeckoFeed(token_ids=TOKEN_IDS)
        feed._get_session = AsyncMock(return_value=mock_session(json_error=ValueError("bad json")))

        with pytest.raises(PriceFeedError, match="Invalid JSON"):
            await feed.fetch_snapshot()

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        feed = CoinGeckoFeed(token_ids=TOKEN_IDS)
        await feed.close()
        assert feed._session is None

    def test_default_tokens(self):
        feed = CoinGeckoFeed()
        assert feed.token_ids["solana"] == "SOL"
        assert len(feed.token_ids) == 6
