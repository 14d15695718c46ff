from __future__ import annotations

import pytest

from book_heatmap.datafeed.history import BookHistory
from book_heatmap.engine.grid import GridPlanner
from book_heatmap.types import RenderGrid


@pytest.fixture
def moving_book(make_booked) -> BookHistory:
    """Book whose extremes move between t=0 and t=50."""
    history = BookHistory(1000)
    history.update(make_booked(0, bids=[(1.0, 1.0), (2.0, 1.0)], asks=[(10.0, 1.0), (12.0, 1.0)]))
    history.update(make_booked(50, bids=[(1.0, 0.0), (3.0, 1.0)], asks=[(12.0, 0.0), (11.0, 1.0)]))
    return history


def test_empty_history_uses_wall_clock():
    planner = GridPlanner(180, 370, 200, clock=lambda: 1000.7)

    assert planner.grid(BookHistory(300)) == RenderGrid(
        time_range=(820, 1000),
        number_time_cells=370,
        price_range=(0.0, 0.0),
        number_price_cells=200,
    )


def test_time_range_ends_at_latest_snapshot(moving_book: BookHistory):
    grid = GridPlanner(30, 10, 20, clock=lambda: 1e12).grid(moving_book)

    assert grid.time_range == (20, 50)
    assert grid.number_time_cells == 10
    assert grid.number_price_cells == 20


def test_price_range_only_considers_window(moving_book: BookHistory):
    grid = GridPlanner(30, 10, 20).grid(moving_book)
    assert grid.price_range == (2.0, 11.0)


def test_price_range_spans_every_snapshot_in_window(moving_book: BookHistory):
    grid = GridPlanner(60, 10, 20).grid(moving_book)
    assert grid.price_range == (1.0, 12.0)


def test_missing_side_defaults_to_zero(make_booked):
    history = BookHistory(60)
    history.update(make_booked(5, bids=[], asks=[(10.0, 1.0), (11.0, 2.0)]))

    grid = GridPlanner(60, 10, 20).grid(history)
    assert grid.price_range == (0.0, 11.0)
