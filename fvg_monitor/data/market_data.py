"""
BingX Market Data Client

Fetches perpetual-swap klines (candlesticks) from the BingX REST API for a
fixed symbol, interval and lookback window, and returns them as Candle
models sorted by time ascending, ready for FVG detection.

Request signing:
    - Parameters (symbol, interval, limit, timestamp) are sorted by key
      and URL-encoded into a query string
    - The query string is signed with HMAC-SHA256 using the API secret
    - The hex digest is appended as the ``signature`` parameter
    - The API key is sent in the ``X-BX-APIKEY`` header

Response handling:
    - Both a bare JSON array and the ``{"code": 0, "data": [...]}`` envelope
      are accepted
    - Numeric strings are coerced to floats
    - Klines arrive newest first and are re-sorted ascending
"""

import asyncio
import hashlib
import hmac
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from loguru import logger
from pydantic import ValidationError

from ..core.config import ApiCredentials, MarketDataSettings
from ..core.exceptions import MarketDataError
from ..core.models import Candle

KLINES_PATH = "/openApi/swap/v3/quote/klines"

_REQUIRED_FIELDS = ("open", "close", "high", "low", "volume", "time")


def build_query(params: Dict[str, Any]) -> str:
    """
    Build the canonical query string that BingX signs.

    Keys are sorted ascending and values URL-encoded.

    Examples:
        >>> build_query({"symbol": "BTC-USDT", "interval": "1m", "limit": "3"})
        'interval=1m&limit=3&symbol=BTC-USDT'
    """
    return "&".join(
        f"{key}={quote(str(params[key]), safe='')}" for key in sorted(params)
    )


def sign(query: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 signature of query under secret."""
    return hmac.new(
        secret.encode("utf-8"),
        query.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def parse_candles(payload: Any) -> List[Candle]:
    """
    Validate a klines response body and convert it to sorted Candles.

    Args:
        payload: Decoded JSON body, either a list of kline objects or an
            envelope with ``code``, ``msg`` and ``data`` keys

    Returns:
        List[Candle]: Candles sorted by time ascending

    Raises:
        MarketDataError: On an API error code or malformed kline data
    """
    rows = payload

    if isinstance(payload, dict):
        code = payload.get("code", 0)
        if code not in (0, "0"):
            raise MarketDataError(
                f"BingX API returned error code {code}: {payload.get('msg', '')}"
            )
        rows = payload.get("data")

    if not isinstance(rows, list):
        raise MarketDataError("Invalid candlestick data format received")

    candles = []
    for row in rows:
        if not isinstance(row, dict) or any(field not in row for field in _REQUIRED_FIELDS):
            raise MarketDataError("Invalid candlestick data format received")

        try:
            candles.append(
                Candle.model_validate({field: row[field] for field in _REQUIRED_FIELDS})
            )
        except ValidationError as e:
            raise MarketDataError(
                f"Invalid candlestick data format received: {e.error_count()} invalid field(s)"
            ) from e

    candles.sort(key=lambda candle: candle.time)
    return candles


class BingXMarketData:
    """
    Async client for BingX perpetual-swap klines.

    The client can share an existing aiohttp session or create its own.
    A session it created is closed by close() / async context exit; an
    injected session is left open for its owner.

    Attributes:
        settings (MarketDataSettings): Symbol, interval, limit and timeout
        credentials (ApiCredentials): Base URL, API key and secret

    Examples:
        >>> async with BingXMarketData(settings, credentials) as market_data:
        ...     candles = await market_data.fetch_candles()
    """

    def __init__(
        self,
        settings: MarketDataSettings,
        credentials: ApiCredentials,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.settings = settings
        self.credentials = credentials
        self._session = session
        self._owns_session = session is None

        logger.info(
            f"BingXMarketData initialized for {settings.symbol} "
            f"({settings.interval}, limit={settings.limit})"
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
            )
            self._owns_session = True
        return self._session

    def _build_url(self, timestamp_ms: int) -> str:
        params = {
            "symbol": self.settings.symbol,
            "interval": self.settings.interval,
            "limit": str(self.settings.limit),
            "timestamp": str(timestamp_ms),
        }
        query = build_query(params)
        signature = sign(query, self.credentials.api_secret)
        return f"{self.credentials.base_url}{KLINES_PATH}?{query}&signature={signature}"

    async def fetch_candles(self) -> List[Candle]:
        """
        Fetch the configured lookback window of candles.

        Returns:
            List[Candle]: Candles sorted by time ascending

        Raises:
            MarketDataError: On transport errors, timeouts, non-2xx status
                or malformed data
        """
        url = self._build_url(int(time.time() * 1000))
        headers = {
            "Content-Type": "application/json",
            "X-BX-APIKEY": self.credentials.api_key,
        }

        logger.debug(f"Requesting klines for {self.settings.symbol} ({self.settings.interval})")

        try:
            async with self._get_session().get(url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    raise MarketDataError(
                        f"BingX API responded with status {response.status}: {error_text}"
                    )
                payload = await response.json(content_type=None)

        except MarketDataError:
            raise
        except asyncio.TimeoutError as e:
            raise MarketDataError(
                f"BingX API request timed out after {self.settings.timeout_seconds}s"
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise MarketDataError(f"BingX API request failed: {e}") from e

        candles = parse_candles(payload)

        logger.info(f"Fetched {len(candles)} candles for {self.settings.symbol}")
        return candles

    async def close(self) -> None:
        """Close the HTTP session if this client created it. Safe to call twice."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("BingXMarketData session closed")
        self._session = None

    async def __aenter__(self) -> "BingXMarketData":
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        return (
            f"BingXMarketData({self.settings.symbol}, {self.settings.interval}, "
            f"limit={self.settings.limit})"
        )
