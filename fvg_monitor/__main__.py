#!/usr/bin/env python3
"""
FVG Monitor command-line interface.

Commands:
    once     Run a single fetch -> detect -> store -> notify cycle
    run      Run cycles on the configured schedule until interrupted
    results  List stored FVG analysis results

Usage:
    python -m fvg_monitor once
    python -m fvg_monitor --config config.yaml run
    python -m fvg_monitor results --json
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

from loguru import logger

from .app import FvgMonitorApp, build_repository
from .core.config import AppConfig, load_config
from .core.exceptions import FvgMonitorError
from .core.log_setup import setup_logging
from .core.models import StoredFvg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fvg_monitor",
        description="Detect and store Fair Value Gaps from BingX candlestick data",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: project root)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file with API credentials",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("once", help="Run a single pipeline cycle")
    subparsers.add_parser("run", help="Run pipeline cycles on a schedule")

    results = subparsers.add_parser("results", help="List stored FVG results")
    results.add_argument("--json", action="store_true", help="Output JSON")

    return parser


async def run_once(config: AppConfig) -> int:
    async with FvgMonitorApp(config) as app:
        result = await app.pipeline.run_cycle()

    if result.is_success:
        print(f"{result.message} ({len(result.data)} FVG(s) stored)")
        return 0

    print(f"Error: {result.message}", file=sys.stderr)
    return 1


async def run_scheduled(config: AppConfig) -> int:
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    async with FvgMonitorApp(config) as app:
        async with app.scheduler():
            await stop_requested.wait()
            logger.info("Shutdown requested")

    return 0


def format_results_table(results: List[StoredFvg]) -> str:
    """Render stored results as a fixed-width text table."""
    header = f"{'TYPE':<8} {'START (UTC)':<19} {'END (UTC)':<19} {'GAP SIZE':>14} {'VOLUME':>16}"
    lines = [header, "-" * len(header)]
    for row in results:
        lines.append(
            f"{row.fvg_type:<8} "
            f"{row.start_time:%Y-%m-%d %H:%M:%S} "
            f"{row.end_time:%Y-%m-%d %H:%M:%S} "
            f"{row.gap_size:>14g} "
            f"{row.volume:>16g}"
        )
    lines.append(f"{len(results)} result(s)")
    return "\n".join(lines)


def show_results(config: AppConfig, as_json: bool) -> int:
    repository = build_repository(config)
    try:
        results = repository.fetch_all()
    finally:
        repository.engine.dispose()

    if as_json:
        print(json.dumps([row.to_display() for row in results], indent=2))
    else:
        print(format_results_table(results))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, args.env_file)
        setup_logging(config.logging)

        if args.command == "once":
            return asyncio.run(run_once(config))
        if args.command == "run":
            return asyncio.run(run_scheduled(config))
        return show_results(config, args.json)

    except FvgMonitorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
