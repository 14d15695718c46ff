#!/usr/bin/env python3
"""
Book Heatmap - Order book depth, volume and heatmap rendering for Kraken spot.

Usage:
    python -m book_heatmap.main BTC/USD --visual-window 180 --time-resolution 370

    Or via the installed script:
    book-heatmap BTC/USD

Controls:
    q - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import ViewerConfig
from .errors import BookHeatmapError

logger = logging.getLogger(__name__)


async def main(symbol: str, config: ViewerConfig) -> None:
    """Main entry point - runs feed, dispatch loop, refresh timer and UI concurrently."""

    # Import here to avoid slow startup for --help
    from .actions import Quit, SubscribeTicker
    from .datafeed.kraken_client import KrakenFeed
    from .dispatch import Dispatch
    from .ui.splat_view import SplatApp

    print(f"Starting Book Heatmap for {symbol}...")
    print(f"  Cache window: {config.retention_window_seconds}s")
    print(f"  Visual window: {config.visual_window_seconds}s")
    print(f"  Grid: {config.time_resolution} x {config.price_resolution}")
    print()

    dispatch = Dispatch(config)
    feed = KrakenFeed(
        dispatch.actions,
        timeout_seconds=config.websocket_timeout_seconds,
        depth=config.book_depth,
        url=config.ws_url,
    )
    dispatch.feed = feed

    await feed.connect()
    await dispatch.actions.put(SubscribeTicker(symbol))

    app = SplatApp(dispatch.state, dispatch.actions)

    async def run_dispatch() -> None:
        try:
            await dispatch.run()
        finally:
            app.exit()

    async def run_feed() -> None:
        try:
            await feed.listen()
        except Exception:
            logger.exception("Feed stopped")
            raise
        finally:
            await dispatch.actions.put(Quit())

    # Create tasks
    dispatch_task = asyncio.create_task(run_dispatch())
    feed_task = asyncio.create_task(run_feed())
    refresh_task = asyncio.create_task(dispatch.refresh())

    try:
        # Run UI (blocks until quit)
        await app.run_async()
        if not dispatch_task.done():
            await dispatch.actions.put(Quit())
        await dispatch_task
    finally:
        # Cleanup
        refresh_task.cancel()
        if not feed_task.done():
            feed_task.cancel()
        await asyncio.gather(refresh_task, feed_task, return_exceptions=True)
        await feed.close()

    # Feed failures are fatal; surface them to the caller
    if not feed_task.cancelled() and feed_task.exception() is not None:
        raise feed_task.exception()


def cli() -> None:
    """CLI entry point."""
    defaults = ViewerConfig()
    parser = argparse.ArgumentParser(
        description="Book Heatmap - Order book depth, volume and heatmap for Kraken spot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m book_heatmap.main BTC/USD
    python -m book_heatmap.main ETH/USD --visual-window 60 --time-resolution 120
    python -m book_heatmap.main SOL/USD --depth 500 --log-level DEBUG
        """
    )

    parser.add_argument(
        "symbol",
        help="Kraken symbol, e.g. BTC/USD"
    )

    parser.add_argument(
        "--cache-window",
        type=int,
        default=defaults.retention_window_seconds,
        help=f"Book history retention in seconds (default: {defaults.retention_window_seconds})"
    )

    parser.add_argument(
        "--visual-window",
        type=int,
        default=defaults.visual_window_seconds,
        help=f"Rendered time window in seconds (default: {defaults.visual_window_seconds})"
    )

    parser.add_argument(
        "--time-resolution",
        type=int,
        default=defaults.time_resolution,
        help=f"Time cells in the render grid (default: {defaults.time_resolution})"
    )

    parser.add_argument(
        "--price-resolution",
        type=int,
        default=defaults.price_resolution,
        help=f"Price cells in the render grid (default: {defaults.price_resolution})"
    )

    parser.add_argument(
        "--depth",
        type=int,
        default=defaults.book_depth,
        help=f"Book levels per side to subscribe to (default: {defaults.book_depth})"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.websocket_timeout_seconds,
        help=f"WebSocket read timeout in seconds (default: {defaults.websocket_timeout_seconds:g})"
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=defaults.buffer_size,
        help=f"Dispatch queue capacity (default: {defaults.buffer_size})"
    )

    parser.add_argument(
        "--refresh",
        type=float,
        default=defaults.refresh_interval_seconds,
        help=f"Seconds between pipeline runs (default: {defaults.refresh_interval_seconds:g})"
    )

    parser.add_argument(
        "--log-file",
        default="book_heatmap.log",
        help="Log file; the terminal belongs to the UI (default: book_heatmap.log)"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        filename=args.log_file,
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ViewerConfig(
            buffer_size=args.buffer_size,
            websocket_timeout_seconds=args.timeout,
            book_depth=args.depth,
            retention_window_seconds=args.cache_window,
            visual_window_seconds=args.visual_window,
            time_resolution=args.time_resolution,
            price_resolution=args.price_resolution,
            refresh_interval_seconds=args.refresh,
        )
    except ValueError as e:
        parser.error(str(e))

    # Run
    try:
        asyncio.run(main(args.symbol, config))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)
    except BookHeatmapError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
