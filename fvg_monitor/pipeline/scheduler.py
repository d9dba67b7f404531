"""
Periodic execution of the FVG pipeline.

PipelineScheduler runs one cycle immediately and then one every
interval_seconds until stopped. A failed cycle is logged and the loop
keeps going.

Graceful Shutdown:
    - _running flag controls the loop lifecycle
    - stop() waits for the current cycle, then cancels after a timeout
    - Async context manager stops the loop automatically on exit
"""

import asyncio
from typing import List, Optional

from loguru import logger

from ..core.models import ActionResult, StoredFvg
from .cycle import FvgPipeline


class PipelineScheduler:
    """
    Runs FvgPipeline.run_cycle() on a fixed interval.

    Attributes:
        pipeline (FvgPipeline): Pipeline to run
        interval_seconds (float): Delay between the start of two cycles

    Examples:
        >>> scheduler = PipelineScheduler(pipeline, interval_seconds=300)
        >>> scheduler.start()
        >>> # ... cycles run in the background ...
        >>> await scheduler.stop()
    """

    def __init__(self, pipeline: FvgPipeline, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be positive, got {interval_seconds}"
            )

        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self._running: bool = False
        self._task: Optional[asyncio.Task] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._run_count: int = 0
        self._last_result: Optional[ActionResult[List[StoredFvg]]] = None

    def start(self) -> asyncio.Task:
        """
        Start the scheduling loop as a background task.

        Idempotent: calling start() on a running scheduler returns the
        existing task.

        Returns:
            asyncio.Task: The loop task
        """
        if self._running and self._task is not None:
            logger.debug("PipelineScheduler already started")
            return self._task

        self._running = True
        self._wakeup = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"PipelineScheduler started (every {self.interval_seconds}s)")
        return self._task

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()

        while self._running:
            started = loop.time()

            try:
                result = await self.pipeline.run_cycle()
            except Exception as e:
                logger.error(f"Unexpected error in pipeline cycle: {e}")
                result = ActionResult.fail(str(e))

            self._run_count += 1
            self._last_result = result

            if result.is_success:
                logger.info(f"Cycle {self._run_count} completed: {result.message}")
            else:
                logger.error(f"Cycle {self._run_count} failed: {result.message}")

            if not self._running:
                break

            delay = max(0.0, self.interval_seconds - (loop.time() - started))
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

        logger.info("PipelineScheduler loop exited gracefully")

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the loop, letting an in-flight cycle finish.

        Safe to call multiple times. If the current cycle does not finish
        within timeout seconds the task is cancelled.
        """
        if not self._running:
            logger.debug("PipelineScheduler is not running")
            return

        logger.info("Stopping PipelineScheduler...")
        self._running = False
        self._wakeup.set()

        if self._task and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Pipeline cycle did not finish within timeout, cancelling...")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    logger.info("Pipeline task cancelled successfully")

        self._task = None
        logger.info("PipelineScheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def run_count(self) -> int:
        """Number of completed cycles."""
        return self._run_count

    @property
    def last_result(self) -> Optional[ActionResult[List[StoredFvg]]]:
        return self._last_result

    async def __aenter__(self) -> "PipelineScheduler":
        self.start()
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        await self.stop()
        return False
