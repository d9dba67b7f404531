"""
Core module shared by every FVG Monitor component.

This module provides:
- Models: Candle, FvgEvent, StoredFvg, ActionResult
- Configuration: config.yaml and environment loading
- RetryPolicy: Bounded retry for outbound I/O
- Exceptions: Typed error hierarchy
"""

from .exceptions import (
    ConfigError,
    CredentialError,
    FvgMonitorError,
    MarketDataError,
    NotificationError,
    RetryExhaustedError,
    StorageError,
)
from .models import ActionResult, Candle, FvgEvent, StoredFvg
from .retry import RetryPolicy, attempt_with_retry

__all__ = [
    "ActionResult",
    "Candle",
    "FvgEvent",
    "StoredFvg",
    "RetryPolicy",
    "attempt_with_retry",
    "FvgMonitorError",
    "ConfigError",
    "CredentialError",
    "MarketDataError",
    "StorageError",
    "NotificationError",
    "RetryExhaustedError",
]
