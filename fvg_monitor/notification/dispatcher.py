"""
FVG notification dispatch.

Two channels are supported:
- In-app: recorded and logged immediately, used for UI feedback
- E-mail: sent through a SendGrid-compatible HTTP API with bounded retry

NotificationDispatcher sends to both channels; an in-app failure is logged
and does not prevent the e-mail attempt.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp
from loguru import logger

from ..core.config import EmailCredentials
from ..core.exceptions import NotificationError, RetryExhaustedError
from ..core.models import ActionResult, FvgEvent, ms_to_datetime
from ..core.retry import RetryPolicy, attempt_with_retry


def format_fvg_notification(events: Sequence[FvgEvent], symbol: str) -> Tuple[str, str]:
    """
    Build a notification title and body summarising detected gaps.

    Args:
        events: Detected FVG events (non-empty)
        symbol: Trading pair the events belong to

    Returns:
        Tuple[str, str]: (title, message)

    Examples:
        >>> title, _ = format_fvg_notification([bullish_event], "BTC-USDT")
        >>> title
        'BTC-USDT: 1 Fair Value Gap(s) detected (1 bullish, 0 bearish)'
    """
    bullish = sum(1 for event in events if event.fvg_type == "bullish")
    bearish = len(events) - bullish

    title = (
        f"{symbol}: {len(events)} Fair Value Gap(s) detected "
        f"({bullish} bullish, {bearish} bearish)"
    )

    lines = []
    for event in events:
        start = ms_to_datetime(event.start_time).strftime("%Y-%m-%d %H:%M:%S")
        end = ms_to_datetime(event.end_time).strftime("%Y-%m-%d %H:%M:%S")
        lines.append(
            f"- {event.fvg_type.upper()} {start} -> {end} UTC | "
            f"gap {event.gap_size:g} | volume {event.volume:g}"
        )

    return title, "\n".join(lines)


class InAppNotifier:
    """
    In-app notification channel.

    Notifications are logged and kept in ``sent`` so a UI (or a test) can
    read them back.
    """

    def __init__(self):
        self.sent: List[Dict[str, str]] = []

    def notify(self, user_id: str, title: str, message: str) -> None:
        notification = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        self.sent.append(notification)
        logger.info(f"In-app notification for user {user_id}: {title}")


class EmailNotifier:
    """
    E-mail notification channel for a SendGrid-compatible API.

    Each send is retried according to the retry policy; the final failure
    is raised as NotificationError.

    Attributes:
        credentials (EmailCredentials): API URL and bearer token
        sender_email (str): Verified sender address
        retry_policy (RetryPolicy): Attempts and delay between them

    Examples:
        >>> notifier = EmailNotifier(credentials, "alerts@example.com")
        >>> await notifier.send("trader@example.com", "FVG detected", "...")
    """

    def __init__(
        self,
        credentials: EmailCredentials,
        sender_email: str,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.credentials = credentials
        self.sender_email = sender_email
        self.retry_policy = retry_policy or RetryPolicy()
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=10)
            )
            self._owns_session = True
        return self._session

    def build_payload(self, recipient: str, subject: str, message: str) -> dict:
        """Build the SendGrid v3 mail/send request body."""
        return {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self.sender_email},
            "subject": subject,
            "content": [{"type": "text/plain", "value": message}],
        }

    async def _post(self, payload: dict) -> None:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.credentials.api_key}",
        }
        try:
            async with self._get_session().post(
                self.credentials.api_url, json=payload, headers=headers
            ) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    raise NotificationError(
                        f"Email service responded with status {response.status}: {error_text}"
                    )
        except aiohttp.ClientError as e:
            raise NotificationError(f"Email service request failed: {e}") from e

    async def send(self, recipient: str, subject: str, message: str) -> None:
        """
        Send one e-mail, retrying on failure.

        Raises:
            NotificationError: If every attempt failed
        """
        payload = self.build_payload(recipient, subject, message)

        try:
            await attempt_with_retry(
                lambda: self._post(payload),
                self.retry_policy,
                description="email notification",
            )
        except RetryExhaustedError as e:
            raise NotificationError(str(e.last_error)) from e

        logger.info(f"Email notification sent to {recipient}")

    async def close(self) -> None:
        """Close the HTTP session if this notifier created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None


class NotificationDispatcher:
    """
    Sends a notification through every configured channel.

    Examples:
        >>> dispatcher = NotificationDispatcher(InAppNotifier(), email_notifier)
        >>> result = await dispatcher.dispatch("user-1", "me@example.com", title, body)
        >>> result.is_success
        True
    """

    def __init__(self, in_app: InAppNotifier, email: Optional[EmailNotifier] = None):
        self.in_app = in_app
        self.email = email

    async def dispatch(
        self,
        user_id: str,
        recipient: Optional[str],
        title: str,
        message: str
    ) -> ActionResult[None]:
        """
        Dispatch an in-app notification, then an e-mail if configured.

        Args:
            user_id: User receiving the in-app notification
            recipient: E-mail address, or None to skip e-mail
            title: Notification title / e-mail subject
            message: Notification body

        Returns:
            ActionResult[None]: Failure only when the e-mail could not be sent
        """
        try:
            self.in_app.notify(user_id, title, message)
        except Exception as e:
            logger.error(f"Failed to dispatch in-app notification: {e}")

        if self.email is not None and recipient:
            try:
                await self.email.send(recipient, title, message)
            except NotificationError as e:
                logger.error(f"Failed to send email notification: {e}")
                return ActionResult.fail(f"Notification dispatch failed: {e}")

        return ActionResult.ok(None, "Notifications dispatched successfully.")

    async def close(self) -> None:
        if self.email is not None:
            await self.email.close()
