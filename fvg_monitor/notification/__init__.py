"""
Notification module for FVG alerts.

This module provides:
- In-app notifications
- E-mail notifications with retry
- FVG summary message formatting
"""

from .dispatcher import (
    EmailNotifier,
    InAppNotifier,
    NotificationDispatcher,
    format_fvg_notification,
)

__all__ = [
    "EmailNotifier",
    "InAppNotifier",
    "NotificationDispatcher",
    "format_fvg_notification",
]
