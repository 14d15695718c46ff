"""
Render grid planning.

Cheap, best-effort bounds for the splats: the last visual window of time and
the full price extent of the book over that window. Points outside the
resulting ranges are simply not rendered.
"""

from __future__ import annotations

import time
from typing import Callable

from ..datafeed.history import BookHistory
from ..types import RenderGrid


class GridPlanner:
    """Derives a RenderGrid from the current BookHistory."""

    __slots__ = ('visual_window_seconds', 'time_cells', 'price_cells', '_clock')

    def __init__(
        self,
        visual_window_seconds: int,
        time_cells: int,
        price_cells: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.visual_window_seconds = visual_window_seconds
        self.time_cells = time_cells
        self.price_cells = price_cells
        self._clock = clock

    def grid(self, history: BookHistory) -> RenderGrid:
        """
        Plan the grid for one pipeline run.

        time_range: (latest - visual window, latest), latest falling back to the wall clock.
        price_range: (lowest in-window bid, highest in-window ask), 0 for a side without data.
        """
        newest = [
            t for t in (history.asks.newest_timestamp, history.bids.newest_timestamp)
            if t is not None
        ]
        latest_time = max(newest) if newest else int(self._clock())

        start = latest_time - self.visual_window_seconds
        end = latest_time

        lowest_bids = [lowest for lowest, _ in history.bids.extremes(start, end)]
        highest_asks = [highest for _, highest in history.asks.extremes(start, end)]

        return RenderGrid(
            time_range=(start, end),
            number_time_cells=self.time_cells,
            price_range=(
                min(lowest_bids) if lowest_bids else 0.0,
                max(highest_asks) if highest_asks else 0.0,
            ),
            number_price_cells=self.price_cells,
        )
