"""
FVG Monitor - Fair Value Gap detection on BingX candlestick data

This package fetches periodic OHLCV candles, detects Fair Value Gaps with a
three-candle sliding window, stores the results and notifies about them.

Modules:
    core: Models, configuration, logging, retry and exceptions
    data: Signed BingX market data client
    strategy: Fair Value Gap detection
    storage: SQLAlchemy result store
    notification: In-app and e-mail notifications
    pipeline: Fetch -> detect -> store -> notify cycle and scheduler
"""

__version__ = "0.1.0"
