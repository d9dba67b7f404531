"""
Pytest configuration and shared fixtures for FVG Monitor tests.

This module provides:
- Candle factories and sample candle sequences
- In-memory SQLite repository
- Mocked aiohttp sessions
"""

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from fvg_monitor.core.config import ApiCredentials, DatabaseSettings, MarketDataSettings
from fvg_monitor.core.models import Candle
from fvg_monitor.storage.repository import FvgRepository, create_engine_from_settings


def make_candle(
    high: float,
    low: float,
    time: int,
    volume: float = 100.0,
    open: Optional[float] = None,
    close: Optional[float] = None
) -> Candle:
    """Build a Candle where only high/low/time/volume matter for detection."""
    return Candle(
        open=open if open is not None else low,
        close=close if close is not None else high,
        high=high,
        low=low,
        volume=volume,
        time=time,
    )


@pytest.fixture
def candle_factory() -> Callable[..., Candle]:
    """Provide the make_candle helper as a fixture."""
    return make_candle


@pytest.fixture
def sample_candles():
    """Provide a gently rising sequence of 20 overlapping candles (no FVGs)."""
    base_price = 35000.0
    candles = []

    for i in range(20):
        candles.append(Candle(
            time=1700000000000 + (i * 900000),  # 15-minute intervals
            open=base_price + (i * 10),
            high=base_price + (i * 10) + 50,
            low=base_price + (i * 10) - 50,
            close=base_price + (i * 10) + 25,
            volume=100.0 + (i * 5),
        ))

    return candles


@pytest.fixture
def repository():
    """Provide a repository backed by a fresh in-memory SQLite database."""
    engine = create_engine_from_settings(DatabaseSettings(url="sqlite://"))
    repo = FvgRepository(engine)
    repo.create_tables()
    yield repo
    engine.dispose()


@pytest.fixture
def market_data_settings():
    return MarketDataSettings(symbol="BTC-USDT", interval="1m", limit=3)


@pytest.fixture
def api_credentials():
    return ApiCredentials(
        base_url="http://dummy-api.com",
        api_key="dummy-key",
        api_secret="dummy-secret",
    )


def make_session(status: int = 200, payload: Any = None, text: str = "") -> MagicMock:
    """
    Build a MagicMock standing in for aiohttp.ClientSession.

    session.get(...) and session.post(...) both return an async context
    manager yielding a response with the given status, json() and text().
    """
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)

    session = MagicMock()
    for method in (session.get, session.post):
        method.return_value.__aenter__.return_value = response
        method.return_value.__aexit__.return_value = False
    session.close = AsyncMock()
    session.response = response
    return session
