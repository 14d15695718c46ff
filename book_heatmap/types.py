"""
Data types for Book Heatmap.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Splat outputs carry numpy arrays; nothing mutates them after the pipeline returns
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np


class Order(NamedTuple):
    """Single price/quantity pair from a book message. quantity == 0 removes the level."""
    price: float
    quantity: float


class Booked(NamedTuple):
    """
    One book message for one side pair.

    The first message for a symbol is a full snapshot, every later one a delta.
    """
    symbol: str
    timestamp: str  # RFC 3339, e.g. "2024-05-01T12:00:00.123456Z"
    bids: list[Order]
    asks: list[Order]


class TickerState(NamedTuple):
    """Level 1 ticker data for a symbol."""
    symbol: str
    bid: float
    bid_qty: float
    ask: float
    ask_qty: float
    last: float
    volume: float
    vwap: float
    low: float
    high: float
    change: float
    change_pct: float


class RenderGrid(NamedTuple):
    """Discretized time/price axes shared by all splats of one pipeline run."""
    time_range: tuple[float, float]
    number_time_cells: int
    price_range: tuple[float, float]
    number_price_cells: int


class SplattedDepth(NamedTuple):
    """Net resting depth per price cell: ask density minus bid density."""
    price_range: tuple[float, float]
    volumes: np.ndarray  # shape (number_price_cells,)


class SplattedVolumes(NamedTuple):
    """Integrated resting volume per time cell, one series per side."""
    time_range: tuple[float, float]
    ask_volumes: np.ndarray  # shape (number_time_cells,)
    bid_volumes: np.ndarray  # shape (number_time_cells,)


class SplattedBlocks(NamedTuple):
    """Net resting quantity over the time/price plane."""
    grid: RenderGrid
    volumes: np.ndarray  # shape (number_time_cells, number_price_cells)
