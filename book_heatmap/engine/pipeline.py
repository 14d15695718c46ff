"""
Render pipeline: one grid, three splats.

run() is a pure function of the history it is given and never mutates it,
so the dispatch loop can hand it an extract_window() copy and run it in a
worker thread while ingestion continues on the live cache.
"""

from __future__ import annotations

import logging
import time
from typing import NamedTuple

from ..datafeed.history import BookHistory
from ..types import RenderGrid, SplattedBlocks, SplattedDepth, SplattedVolumes
from .grid import GridPlanner
from .splat import splat_1d, splat_2d

logger = logging.getLogger(__name__)


class PipelineResult(NamedTuple):
    depth: SplattedDepth
    volumes: SplattedVolumes
    blocks: SplattedBlocks


def splat_depth(grid: RenderGrid, history: BookHistory) -> SplattedDepth:
    """Net depth of the latest snapshot per price cell (asks minus bids)."""
    (_, asks), (_, bids) = history.latest()

    ask_density = splat_1d(grid.price_range, grid.number_price_cells, list(asks.items()))
    bid_density = splat_1d(grid.price_range, grid.number_price_cells, list(bids.items()))

    return SplattedDepth(price_range=grid.price_range, volumes=ask_density - bid_density)


def splat_volumes(grid: RenderGrid, history: BookHistory) -> SplattedVolumes:
    """Total resting quantity over time, one series per side."""
    start, end = grid.time_range
    ask_totals, bid_totals = history.integrate_window(start, end)

    return SplattedVolumes(
        time_range=grid.time_range,
        ask_volumes=splat_1d(grid.time_range, grid.number_time_cells, list(ask_totals.items())),
        bid_volumes=splat_1d(grid.time_range, grid.number_time_cells, list(bid_totals.items())),
    )


def splat_blocks(grid: RenderGrid, history: BookHistory) -> SplattedBlocks:
    """
    Net resting quantity over the time/price plane (asks minus bids).

    Works on an extracted copy of the grid's time range so no lock on the
    given history is held while splatting.
    """
    start, end = grid.time_range
    window = history.extract_window(start, end)

    ranges = (grid.time_range, grid.price_range)
    sizes = (grid.number_time_cells, grid.number_price_cells)

    ask_density = splat_2d(ranges, sizes, list(window.asks.iter_levels(start, end)))
    bid_density = splat_2d(ranges, sizes, list(window.bids.iter_levels(start, end)))

    return SplattedBlocks(grid=grid, volumes=ask_density - bid_density)


class Pipeline:
    """
    GridPlanner plus the three splatters.

    Cheap to copy between threads: holds configuration only.
    """

    __slots__ = ('planner',)

    def __init__(self, visual_window_seconds: int, time_cells: int, price_cells: int) -> None:
        self.planner = GridPlanner(visual_window_seconds, time_cells, price_cells)

    def run(self, history: BookHistory) -> PipelineResult:
        """Plan one grid and splat depth, volumes and heatmap onto it."""
        started = time.perf_counter()

        grid = self.planner.grid(history)
        result = PipelineResult(
            depth=splat_depth(grid, history),
            volumes=splat_volumes(grid, history),
            blocks=splat_blocks(grid, history),
        )

        logger.debug(
            "Pipeline run: time=%s price=%s in %.1fms",
            grid.time_range, grid.price_range, (time.perf_counter() - started) * 1000,
        )
        return result
