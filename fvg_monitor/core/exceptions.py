"""
Exception hierarchy for FVG Monitor.

Collaborators (market data, storage, notifications) raise these typed
exceptions; the pipeline is the boundary that converts them into failed
ActionResult outcomes and logs them.
"""

from typing import Optional


class FvgMonitorError(Exception):
    """Base class for all FVG Monitor errors."""
    pass


class ConfigError(FvgMonitorError):
    """
    Raised when configuration is missing or invalid.

    This exception indicates a problem with config.yaml that must be
    resolved before the pipeline can be assembled.
    """
    pass


class CredentialError(FvgMonitorError):
    """
    Raised when API credentials are missing or still placeholders.

    Credentials are only ever read from environment variables; the message
    names the variables but never their values.
    """
    pass


class MarketDataError(FvgMonitorError):
    """Raised when the market-data API fails or returns malformed candles."""
    pass


class StorageError(FvgMonitorError):
    """Raised when FVG results cannot be written to or read from the database."""
    pass


class NotificationError(FvgMonitorError):
    """Raised when a notification could not be delivered."""
    pass


class RetryExhaustedError(FvgMonitorError):
    """
    Raised when every attempt allowed by a RetryPolicy has failed.

    Attributes:
        attempts (int): Number of attempts that were made
        last_error (Exception): The error raised by the final attempt
    """

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
