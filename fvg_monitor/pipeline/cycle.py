"""
FVG pipeline cycle: fetch -> detect -> store -> notify.

FvgPipeline is the single place where collaborator errors are converted
into ActionResult failures and logged. All collaborators are injected, so
the pipeline can be assembled with fakes in tests.
"""

import asyncio
from typing import List, Optional, Protocol

from loguru import logger

from ..core.config import NotificationSettings
from ..core.exceptions import FvgMonitorError
from ..core.models import ActionResult, Candle, FvgEvent, StoredFvg
from ..notification.dispatcher import NotificationDispatcher, format_fvg_notification
from ..storage.repository import FvgRepository
from ..strategy.fvg import analyze_fvgs


class MarketDataSource(Protocol):
    """Anything that returns candles sorted by time ascending."""

    async def fetch_candles(self) -> List[Candle]:
        ...


class FvgPipeline:
    """
    Runs one detection cycle at a time.

    Processing flow:
    1. Fetch candles from the market data source
    2. Detect FVGs (pure analysis)
    3. Store events in the repository (in a worker thread, off the event loop)
    4. Notify (only when events were stored and notifications are enabled)

    Concurrent run_cycle() calls are serialized by a lock so storage writes
    from two cycles never interleave.

    Attributes:
        market_data (MarketDataSource): Candle source
        repository (FvgRepository): Result store
        dispatcher (NotificationDispatcher): Optional notification channels
        notification_settings (NotificationSettings): Recipients and toggle
        symbol (str): Trading pair used in notification text

    Examples:
        >>> pipeline = FvgPipeline(market_data, repository)
        >>> result = await pipeline.run_cycle()
        >>> result.is_success
        True
    """

    def __init__(
        self,
        market_data: MarketDataSource,
        repository: FvgRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        notification_settings: Optional[NotificationSettings] = None,
        symbol: str = ""
    ):
        self.market_data = market_data
        self.repository = repository
        self.dispatcher = dispatcher
        self.notification_settings = notification_settings or NotificationSettings()
        self.symbol = symbol
        self._lock = asyncio.Lock()

    async def run_cycle(self) -> ActionResult[List[StoredFvg]]:
        """
        Execute fetch -> detect -> store -> notify once.

        Returns:
            ActionResult[List[StoredFvg]]: Stored rows on success, or the
                message of the first failing step
        """
        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> ActionResult[List[StoredFvg]]:
        # Step 1: Fetch market data
        try:
            candles = await self.market_data.fetch_candles()
        except FvgMonitorError as e:
            logger.error(f"Failed to fetch market data: {e}")
            return ActionResult.fail(str(e))

        # Step 2: Detect Fair Value Gaps
        analysis = analyze_fvgs(candles)
        if not analysis.is_success:
            logger.error(f"Error during FVG analysis: {analysis.message}")
            return ActionResult.fail(analysis.message)

        events = analysis.data
        logger.info(
            f"FVG analysis of {len(candles)} candles found {len(events)} gap(s): "
            f"{analysis.message}"
        )

        # Step 3: Store results
        try:
            stored = await asyncio.to_thread(self.repository.store, events)
        except FvgMonitorError as e:
            logger.error(f"Failed to store FVG analysis results: {e}")
            return ActionResult.fail(str(e))

        # Step 4: Notify, never failing the cycle
        if stored:
            await self._notify(analysis.data)

        return ActionResult.ok(
            stored,
            "Market data fetched, analyzed, and stored successfully.",
        )

    async def _notify(self, events: List[FvgEvent]) -> None:
        settings = self.notification_settings
        if self.dispatcher is None or not settings.enabled:
            return

        title, message = format_fvg_notification(events, self.symbol)
        result = await self.dispatcher.dispatch(
            settings.user_id,
            settings.recipient_email,
            title,
            message,
        )
        if not result.is_success:
            logger.warning(f"FVG notification not delivered: {result.message}")
