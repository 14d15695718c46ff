"""
Single-writer dispatch loop.

Owns one BookHistory per subscribed symbol and is the only code that mutates
them. Everything else (feed, UI, refresh timer) sends actions through the
bounded queue.

Pipeline runs are handed a deep copy of the history and executed in the
default thread pool; results land in RenderState last-write-wins, so a slow
run finishing after a faster, later one briefly shows older splats.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Optional, Protocol

from .actions import (
    Action,
    Inform,
    Quit,
    RunPipeline,
    SubscribeTicker,
    UnsubscribeTicker,
    UpdateBook,
    UpdateTicker,
    Warn,
)
from .config import ViewerConfig
from .datafeed.history import BookHistory
from .engine.pipeline import Pipeline, PipelineResult
from .errors import DispatchError, FeedError, ParseError
from .types import SplattedBlocks, SplattedDepth, SplattedVolumes, TickerState

logger = logging.getLogger(__name__)

MAX_WARNINGS = 20


class Feed(Protocol):
    async def subscribe(self, symbol: str) -> None: ...
    async def unsubscribe(self, symbol: str) -> None: ...


class RenderState:
    """
    What the presentation layer draws.

    Written only by the dispatch loop, read by the UI on the same event loop.
    """

    def __init__(self) -> None:
        self.symbol: Optional[str] = None
        self.ticker: Optional[TickerState] = None
        self.depth: Optional[SplattedDepth] = None
        self.volumes: Optional[SplattedVolumes] = None
        self.blocks: Optional[SplattedBlocks] = None
        self.warnings: deque[str] = deque(maxlen=MAX_WARNINGS)
        self.renders: int = 0
        self.rendered_at: float = 0.0

    def set_symbol(self, symbol: Optional[str]) -> None:
        """Switch the displayed symbol and drop everything drawn for the previous one."""
        self.symbol = symbol
        self.ticker = None
        self.depth = None
        self.volumes = None
        self.blocks = None

    def set_ticker(self, ticker: TickerState) -> None:
        self.ticker = ticker

    def set_splats(self, result: PipelineResult) -> None:
        self.depth, self.volumes, self.blocks = result
        self.renders += 1
        self.rendered_at = time.time()

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


class Dispatch:
    """
    Routes actions between feed, cache, pipeline and UI.

    Usage:
        dispatch = Dispatch(config, feed)   # feed built around dispatch.actions
        await dispatch.actions.put(SubscribeTicker("BTC/USD"))
        await dispatch.run()                # Until Quit, or a fatal error
    """

    def __init__(
        self,
        config: ViewerConfig,
        feed: Optional[Feed] = None,
        state: Optional[RenderState] = None,
    ) -> None:
        self.config = config
        self.actions: asyncio.Queue[Action] = asyncio.Queue(maxsize=config.buffer_size)
        self.feed = feed
        self.state = state if state is not None else RenderState()
        self.pipeline = Pipeline(
            config.visual_window_seconds,
            config.time_resolution,
            config.price_resolution,
        )

        self.books: dict[str, BookHistory] = {}
        self.tickers: dict[str, Optional[TickerState]] = {}
        self._unsubscribed: set[str] = set()
        self._pipelines: set[asyncio.Task[None]] = set()

    async def run(self) -> None:
        """
        Process actions until Quit.

        Raises ConsistencyError / DispatchError / FeedError-derived fatal errors
        after waiting for in-flight pipeline runs.
        """
        try:
            while True:
                action = await self.actions.get()
                if isinstance(action, Quit):
                    logger.info("Quit requested")
                    break
                await self.handle(action)
        finally:
            await self._drain_pipelines()

    async def handle(self, action: Action) -> None:
        """Apply one action. HOT PATH for UpdateBook."""
        if isinstance(action, UpdateBook):
            self._update_book(action)
        elif isinstance(action, UpdateTicker):
            self._update_ticker(action)
        elif isinstance(action, RunPipeline):
            self._spawn_pipeline(action.symbol)
        elif isinstance(action, SubscribeTicker):
            await self._subscribe(action.symbol)
        elif isinstance(action, UnsubscribeTicker):
            await self._unsubscribe(action.symbol)
        elif isinstance(action, Warn):
            self._warn(action.message)
        elif isinstance(action, Inform):
            logger.info(action.message)
        else:
            raise DispatchError(f"Unknown action {action!r}")

    # -- book / ticker ------------------------------------------------------

    def _update_book(self, action: UpdateBook) -> None:
        symbol = action.booked.symbol
        history = self.books.get(symbol)
        if history is None:
            if symbol in self._unsubscribed:
                return
            raise DispatchError(f"Got book update for {symbol} while symbol was absent from cache")

        try:
            history.update(action.booked)
        except ParseError as e:
            self._warn(f"{symbol}: rejected book update: {e}")

    def _update_ticker(self, action: UpdateTicker) -> None:
        symbol = action.ticker.symbol
        if symbol not in self.tickers:
            if symbol in self._unsubscribed:
                return
            raise DispatchError(f"Got ticker update for {symbol} while symbol was absent from cache")

        self.tickers[symbol] = action.ticker
        if self.state.symbol == symbol:
            self.state.set_ticker(action.ticker)

    # -- subscriptions ------------------------------------------------------

    async def _subscribe(self, symbol: str) -> None:
        self._unsubscribed.discard(symbol)
        self.tickers[symbol] = None
        self.books[symbol] = BookHistory(self.config.retention_window_seconds)
        self.state.set_symbol(symbol)

        if self.feed is None:
            return
        try:
            await self.feed.subscribe(symbol)
        except FeedError as e:
            self._warn(f"{symbol}: subscribe failed: {e}")

    async def _unsubscribe(self, symbol: str) -> None:
        if self.feed is not None:
            try:
                await self.feed.unsubscribe(symbol)
            except FeedError as e:
                self._warn(f"{symbol}: unsubscribe failed: {e}")

        self.tickers.pop(symbol, None)
        self.books.pop(symbol, None)
        self._unsubscribed.add(symbol)
        if self.state.symbol == symbol:
            self.state.set_symbol(None)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.state.add_warning(message)

    # -- pipeline -----------------------------------------------------------

    def _spawn_pipeline(self, symbol: str) -> None:
        history = self.books.get(symbol)
        if history is None:
            return

        snapshot = history.extract_window(0, 2 ** 63 - 1)
        task = asyncio.create_task(self._run_pipeline(symbol, snapshot))
        self._pipelines.add(task)
        task.add_done_callback(self._pipeline_done)

    async def _run_pipeline(self, symbol: str, history: BookHistory) -> None:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.pipeline.run, history)
        if self.state.symbol == symbol:
            self.state.set_splats(result)

    def _pipeline_done(self, task: asyncio.Task[None]) -> None:
        self._pipelines.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Pipeline run failed", exc_info=error)
            self.state.add_warning(f"Pipeline run failed: {error!r}")

    async def _drain_pipelines(self) -> None:
        if self._pipelines:
            await asyncio.gather(*self._pipelines, return_exceptions=True)

    async def refresh(self) -> None:
        """Request a pipeline run for the displayed symbol every refresh interval."""
        while True:
            await asyncio.sleep(self.config.refresh_interval_seconds)
            if self.state.symbol is not None:
                await self.actions.put(RunPipeline(self.state.symbol))
