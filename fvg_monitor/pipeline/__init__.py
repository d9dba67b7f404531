"""
Pipeline module for FVG Monitor.

This package contains:
- FvgPipeline: One fetch -> detect -> store -> notify cycle
- PipelineScheduler: Runs cycles on a fixed interval

Examples:
    >>> pipeline = FvgPipeline(market_data, repository, dispatcher)
    >>> async with PipelineScheduler(pipeline, interval_seconds=300):
    ...     await shutdown_requested.wait()
"""

from .cycle import FvgPipeline
from .scheduler import PipelineScheduler

__all__ = ["FvgPipeline", "PipelineScheduler"]
