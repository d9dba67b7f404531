"""
Strategy module for Fair Value Gap detection.

This module implements:
- Bullish FVG detection (third candle low above first candle high)
- Bearish FVG detection (third candle high below first candle low)
"""

from .fvg import analyze_fvgs, detect_fvgs

__all__ = ["analyze_fvgs", "detect_fvgs"]
