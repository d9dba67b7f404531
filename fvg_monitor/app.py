"""
Application assembly.

Builds every collaborator from an AppConfig and wires them into an
FvgPipeline. This is the only place where configuration turns into
clients; nothing else reads the environment or creates engines.
"""

from typing import Optional

from loguru import logger

from .core.config import (
    AppConfig,
    load_email_credentials,
    load_market_data_credentials,
)
from .data.market_data import BingXMarketData
from .notification.dispatcher import EmailNotifier, InAppNotifier, NotificationDispatcher
from .pipeline.cycle import FvgPipeline
from .pipeline.scheduler import PipelineScheduler
from .storage.repository import FvgRepository, create_engine_from_settings


def build_repository(config: AppConfig) -> FvgRepository:
    """Create the result store and make sure its table exists."""
    repository = FvgRepository(create_engine_from_settings(config.database))
    repository.create_tables()
    return repository


class FvgMonitorApp:
    """
    Owns the pipeline's resources for the lifetime of a command.

    Credentials are loaded on entry; HTTP sessions and the database engine
    are released on exit.

    Examples:
        >>> async with FvgMonitorApp(config) as app:
        ...     result = await app.pipeline.run_cycle()
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.repository: Optional[FvgRepository] = None
        self.market_data: Optional[BingXMarketData] = None
        self.dispatcher: Optional[NotificationDispatcher] = None
        self.pipeline: Optional[FvgPipeline] = None

    async def __aenter__(self) -> "FvgMonitorApp":
        config = self.config
        notifications = config.notifications

        # Credentials first: nothing has been opened yet if they are missing
        market_credentials = load_market_data_credentials()
        email_credentials = None
        if notifications.enabled and notifications.recipient_email:
            email_credentials = load_email_credentials()

        self.repository = build_repository(config)
        self.market_data = BingXMarketData(config.market_data, market_credentials)

        if notifications.enabled:
            email = None
            if email_credentials is not None:
                email = EmailNotifier(
                    email_credentials,
                    notifications.sender_email,
                    retry_policy=notifications.retry,
                )
            self.dispatcher = NotificationDispatcher(InAppNotifier(), email)

        self.pipeline = FvgPipeline(
            self.market_data,
            self.repository,
            dispatcher=self.dispatcher,
            notification_settings=notifications,
            symbol=config.market_data.symbol,
        )

        logger.info(f"FVG monitor ready for {config.market_data.symbol}")
        return self

    def scheduler(self) -> PipelineScheduler:
        return PipelineScheduler(self.pipeline, self.config.schedule.interval_seconds)

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        if self.market_data is not None:
            await self.market_data.close()
        if self.dispatcher is not None:
            await self.dispatcher.close()
        if self.repository is not None:
            self.repository.engine.dispose()
        logger.debug("FVG monitor resources released")
        return False
