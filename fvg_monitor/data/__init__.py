"""
Data module for market data acquisition.

This module handles:
- Signed BingX REST requests
- Candle validation and normalization
- Ascending time ordering for FVG detection
"""

from .market_data import BingXMarketData

__all__ = ["BingXMarketData"]
