"""
Unit tests for the BingX market data client.

Tests cover:
- Canonical query building and HMAC-SHA256 signing
- Response parsing (bare list and code/data envelope)
- HTTP, transport and timeout error handling
- Session ownership
"""

import asyncio
from unittest.mock import patch

import aiohttp
import pytest

from fvg_monitor.core.exceptions import MarketDataError
from fvg_monitor.data.market_data import (
    KLINES_PATH,
    BingXMarketData,
    build_query,
    parse_candles,
    sign,
)
from tests.conftest import make_session

KLINES = [
    {"open": "102", "close": "105", "high": "108", "low": "110", "volume": "200", "time": 3000},
    {"open": "95", "close": "98", "high": "102", "low": "90", "volume": "150", "time": 2000},
    {"open": "90", "close": "95", "high": "100", "low": "85", "volume": "100", "time": 1000},
]


class TestSigning:
    """Test query canonicalization and signature generation."""

    def test_query_keys_are_sorted(self):
        """Test that parameters are ordered by key."""
        query = build_query({"symbol": "BTC-USDT", "interval": "1m", "limit": "3"})
        assert query == "interval=1m&limit=3&symbol=BTC-USDT"

    def test_query_values_are_url_encoded(self):
        """Test that reserved characters in values are escaped."""
        assert build_query({"b": "a b", "a": "x/y&z"}) == "a=x%2Fy%26z&b=a%20b"

    def test_sign_hmac_sha256(self):
        """Test the signature against a published HMAC-SHA256 vector."""
        signature = sign("The quick brown fox jumps over the lazy dog", "key")
        assert signature == "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"


class TestParseCandles:
    """Test response validation."""

    def test_bare_list_is_sorted_ascending(self):
        """Test that newest-first klines are returned oldest first."""
        candles = parse_candles(KLINES)

        assert [c.time for c in candles] == [1000, 2000, 3000]
        assert candles[0].high == 100.0
        assert candles[2].low == 110.0

    def test_envelope(self):
        """Test the {code, msg, data} response envelope."""
        candles = parse_candles({"code": 0, "msg": "", "data": KLINES})
        assert len(candles) == 3

    def test_empty_list(self):
        """Test that no klines is not an error."""
        assert parse_candles([]) == []

    def test_extra_fields_are_ignored(self):
        """Test that unknown kline fields do not break parsing."""
        row = dict(KLINES[0], quoteVolume="1")
        assert parse_candles([row])[0].volume == 200.0

    def test_api_error_code(self):
        """Test that a non-zero code is reported with its message."""
        with pytest.raises(MarketDataError, match="error code 100001: Signature verification failed"):
            parse_candles({"code": 100001, "msg": "Signature verification failed"})

    @pytest.mark.parametrize("payload", [
        {"code": 0, "data": None},
        {"code": 0, "data": {"open": "1"}},
        "not a list",
        [{"open": "1", "close": "1", "high": "1", "low": "1", "time": 1}],
        ["row"],
    ])
    def test_malformed_data(self, payload):
        """Test that missing fields or wrong shapes are rejected."""
        with pytest.raises(MarketDataError, match="Invalid candlestick data format received"):
            parse_candles(payload)

    def test_non_numeric_values(self):
        """Test that unparsable numbers are rejected."""
        row = dict(KLINES[0], high="n/a")
        with pytest.raises(MarketDataError, match="Invalid candlestick data format received"):
            parse_candles([row])


class TestBingXMarketData:
    """Test the HTTP client with a mocked aiohttp session."""

    @pytest.mark.asyncio
    async def test_fetch_candles(self, market_data_settings, api_credentials):
        """Test a successful request: signed URL, headers and parsed candles."""
        session = make_session(payload={"code": 0, "data": KLINES})
        market_data = BingXMarketData(market_data_settings, api_credentials, session=session)

        with patch("fvg_monitor.data.market_data.time.time", return_value=1700000000.0):
            candles = await market_data.fetch_candles()

        assert [c.time for c in candles] == [1000, 2000, 3000]

        query = "interval=1m&limit=3&symbol=BTC-USDT&timestamp=1700000000000"
        expected_url = (
            f"http://dummy-api.com{KLINES_PATH}?{query}"
            f"&signature={sign(query, 'dummy-secret')}"
        )
        session.get.assert_called_once_with(
            expected_url,
            headers={"Content-Type": "application/json", "X-BX-APIKEY": "dummy-key"},
        )

    @pytest.mark.asyncio
    async def test_http_error_status(self, market_data_settings, api_credentials):
        """Test that a non-2xx response raises MarketDataError with the body."""
        session = make_session(status=500, text="Internal Server Error")
        market_data = BingXMarketData(market_data_settings, api_credentials, session=session)

        with pytest.raises(MarketDataError, match="status 500: Internal Server Error"):
            await market_data.fetch_candles()

    @pytest.mark.asyncio
    async def test_malformed_response(self, market_data_settings, api_credentials):
        """Test that a 200 response with bad data raises MarketDataError."""
        session = make_session(payload={"unexpected": "format"})
        market_data = BingXMarketData(market_data_settings, api_credentials, session=session)

        with pytest.raises(MarketDataError, match="Invalid candlestick data format received"):
            await market_data.fetch_candles()

    @pytest.mark.asyncio
    async def test_transport_error(self, market_data_settings, api_credentials):
        """Test that connection failures are wrapped."""
        session = make_session()
        session.get.side_effect = aiohttp.ClientConnectionError("connection refused")
        market_data = BingXMarketData(market_data_settings, api_credentials, session=session)

        with pytest.raises(MarketDataError, match="request failed: connection refused"):
            await market_data.fetch_candles()

    @pytest.mark.asyncio
    async def test_timeout(self, market_data_settings, api_credentials):
        """Test that a timeout is wrapped."""
        session = make_session()
        session.get.side_effect = asyncio.TimeoutError()
        market_data = BingXMarketData(market_data_settings, api_credentials, session=session)

        with pytest.raises(MarketDataError, match="timed out"):
            await market_data.fetch_candles()

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self, market_data_settings, api_credentials):
        """Test that a shared session stays open for its owner."""
        session = make_session()

        async with BingXMarketData(market_data_settings, api_credentials, session=session):
            pass

        session.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_session_is_closed(self, market_data_settings, api_credentials):
        """Test that a session created by the client is closed on exit."""
        market_data = BingXMarketData(market_data_settings, api_credentials)
        session = market_data._get_session()

        await market_data.close()
        await market_data.close()

        assert session.closed

    def test_repr_hides_credentials(self, market_data_settings, api_credentials):
        """Test that repr shows the market, not the secrets."""
        market_data = BingXMarketData(market_data_settings, api_credentials, session=make_session())

        assert repr(market_data) == "BingXMarketData(BTC-USDT, 1m, limit=3)"
