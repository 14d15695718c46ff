"""
Depth / volume / heatmap TUI using Textual.

Displays:
- Top: Status bar with ticker data for the current symbol
- Left: Net depth curve (bids left in green, asks right in red)
- Right: Price/time heatmap with ask and bid volume sparklines under it

Performance notes:
- Polls RenderState at ~5 FPS; pipeline runs are slower than that anyway
- Splat arrays are resampled to the widget size before building Rich Text
- Minimal widget tree updates
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import numpy as np
from rich.console import RenderableType
from rich.style import Style
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Static

from ..actions import Action, Quit

if TYPE_CHECKING:
    from ..dispatch import RenderState
    from ..types import SplattedBlocks, SplattedDepth, SplattedVolumes

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"
BAR_BG = "#1e293b"

BID_RGB = (34, 197, 94)
ASK_RGB = (239, 68, 68)
BG_RGB = (15, 23, 42)

SPARK_CHARS = " ▁▂▃▄▅▆▇█"

REFRESH_SECONDS = 0.2


def format_qty(qty: float) -> str:
    """Format quantity for display."""
    magnitude = abs(qty)
    if magnitude >= 1000:
        return f"{qty/1000:.1f}K"
    elif magnitude >= 1:
        return f"{qty:.1f}"
    else:
        return f"{qty:.3f}"


def resample(values: np.ndarray, size: int) -> np.ndarray:
    """Average ``values`` into ``size`` roughly equal buckets (repeat when upsampling)."""
    if size <= 0:
        return np.zeros(0, dtype=np.float64)
    if len(values) == 0:
        return np.zeros(size, dtype=np.float64)
    if len(values) <= size:
        index = np.floor(np.linspace(0, len(values), size, endpoint=False)).astype(int)
        return values[index]
    return np.array([chunk.mean() for chunk in np.array_split(values, size)])


def resample_2d(values: np.ndarray, time_cells: int, price_cells: int) -> np.ndarray:
    """Resample a (time, price) plane to shape (time_cells, price_cells)."""
    if values.size == 0 or time_cells <= 0 or price_cells <= 0:
        return np.zeros((max(time_cells, 0), max(price_cells, 0)), dtype=np.float64)
    # Each column of values is one price level's series over time
    by_time = np.array([resample(series, time_cells) for series in values.T]).T
    return np.array([resample(prices, price_cells) for prices in by_time])


def make_bar(value: float, max_value: float, width: int, color: str, align_right: bool = False) -> Text:
    """Create a horizontal bar using block characters."""
    if max_value <= 0:
        return Text(" " * width)

    fill_ratio = min(1.0, abs(value) / max_value)
    fill_width = int(fill_ratio * width)

    filled = "█" * fill_width
    blank = " " * (width - fill_width)
    bar = blank + filled if align_right else filled + blank
    return Text(bar, style=Style(color=color, bgcolor=BAR_BG))


def sparkline(values: np.ndarray, width: int, color: str) -> Text:
    """One-row block sparkline scaled to the series maximum."""
    series = resample(values, width)
    peak = float(np.max(np.abs(series))) if series.size else 0.0
    if peak <= 0:
        return Text(" " * width)
    levels = np.clip(np.round(np.abs(series) / peak * (len(SPARK_CHARS) - 1)), 0, len(SPARK_CHARS) - 1)
    return Text("".join(SPARK_CHARS[int(level)] for level in levels), style=color)


def blend(rgb: tuple[int, int, int], intensity: float) -> str:
    """Mix ``rgb`` over the background by ``intensity`` in [0, 1]."""
    r, g, b = (int(bg + (c - bg) * intensity) for c, bg in zip(rgb, BG_RGB))
    return f"rgb({r},{g},{b})"


class DepthChart(Static):
    """Net depth per price row, highest price on top."""

    DEFAULT_CSS = """
    DepthChart {
        width: 44;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._depth: SplattedDepth | None = None

    def update_depth(self, depth: SplattedDepth | None) -> None:
        self._depth = depth
        self.refresh()

    def render(self) -> RenderableType:
        if self._depth is None:
            return Text("Waiting for data...", style="dim")

        low, high = self._depth.price_range
        rows = max(self.size.height - 1, 1)
        values = resample(self._depth.volumes, rows)[::-1]
        prices = np.linspace(high, low, rows)
        peak = float(np.max(np.abs(values))) if values.size else 0.0

        result = Text()
        result.append(f"{'Bids':>14}{'Price':^12}{'Asks':<14}\n", style=HEADER_COLOR)
        for price, value in zip(prices, values):
            result.append(make_bar(value if value < 0 else 0.0, peak, 14, BID_COLOR, align_right=True))
            result.append(f"{price:^12.2f}", style=PRICE_COLOR)
            result.append(make_bar(value if value > 0 else 0.0, peak, 14, ASK_COLOR))
            result.append("\n")
        return result


class HeatmapView(Static):
    """Net resting quantity over time (columns) and price (rows)."""

    DEFAULT_CSS = """
    HeatmapView {
        width: 100%;
        height: 1fr;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._blocks: SplattedBlocks | None = None

    def update_blocks(self, blocks: SplattedBlocks | None) -> None:
        self._blocks = blocks
        self.refresh()

    def render(self) -> RenderableType:
        if self._blocks is None:
            return Text("Waiting for data...", style="dim")

        rows = max(self.size.height, 1)
        cols = max(self.size.width, 1)
        plane = resample_2d(self._blocks.volumes, cols, rows)
        peak = float(np.max(np.abs(plane))) if plane.size else 0.0

        result = Text()
        for row in range(rows - 1, -1, -1):
            for col in range(cols):
                value = plane[col, row]
                intensity = min(1.0, abs(value) / peak) if peak > 0 else 0.0
                color = blend(ASK_RGB if value > 0 else BID_RGB, intensity)
                result.append(" ", style=Style(bgcolor=color))
            if row:
                result.append("\n")
        return result


class VolumeChart(Static):
    """Ask and bid resting volume over the visual window."""

    DEFAULT_CSS = """
    VolumeChart {
        width: 100%;
        height: 2;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._volumes: SplattedVolumes | None = None

    def update_volumes(self, volumes: SplattedVolumes | None) -> None:
        self._volumes = volumes
        self.refresh()

    def render(self) -> RenderableType:
        if self._volumes is None:
            return Text("")

        width = max(self.size.width, 1)
        result = Text()
        result.append(sparkline(self._volumes.ask_volumes, width, ASK_COLOR))
        result.append("\n")
        result.append(sparkline(self._volumes.bid_volumes, width, BID_COLOR))
        return result


class StatusBar(Static):
    """Status bar showing symbol, ticker data, and render count."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._state: RenderState | None = None

    def update_state(self, state: RenderState) -> None:
        self._state = state
        self.refresh()

    def render(self) -> RenderableType:
        if self._state is None or self._state.symbol is None:
            return Text("Connecting...", style="dim")

        state = self._state
        result = Text()
        result.append(Text(f" {state.symbol} ", style="bold white on #1e40af"))

        ticker = state.ticker
        if ticker is not None:
            change_style = BID_COLOR if ticker.change >= 0 else ASK_COLOR
            parts = [
                Text("  Bid: ", style="dim"),
                Text(f"{ticker.bid:.2f}", style=BID_COLOR),
                Text("  Ask: ", style="dim"),
                Text(f"{ticker.ask:.2f}", style=ASK_COLOR),
                Text("  Last: ", style="dim"),
                Text(f"{ticker.last:.2f}"),
                Text("  H/L: ", style="dim"),
                Text(f"{ticker.high:.2f}/{ticker.low:.2f}"),
                Text("  Vol: ", style="dim"),
                Text(format_qty(ticker.volume), style="cyan"),
                Text("  VWAP: ", style="dim"),
                Text(f"{ticker.vwap:.2f}"),
                Text("  24h: ", style="dim"),
                Text(f"{ticker.change_pct:+.2f}%", style=change_style),
            ]
            for p in parts:
                result.append(p)

        result.append(Text("  │  ", style="dim"))
        result.append(Text("Renders: ", style="dim"))
        result.append(Text(f"{state.renders}", style="cyan"))
        if state.warnings:
            result.append(Text(f"\n {state.warnings[-1]}", style="yellow"))
        return result


class SplatApp(App):
    """Main Book Heatmap application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, state: RenderState, actions: asyncio.Queue[Action]) -> None:
        super().__init__()
        self.state = state
        self.actions = actions
        self._status_bar: StatusBar | None = None
        self._depth_chart: DepthChart | None = None
        self._heatmap: HeatmapView | None = None
        self._volume_chart: VolumeChart | None = None
        self._seen_renders: int = -1

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar()
        self._depth_chart = DepthChart()
        self._heatmap = HeatmapView()
        self._volume_chart = VolumeChart()

        yield self._status_bar
        yield Horizontal(
            self._depth_chart,
            Vertical(self._heatmap, self._volume_chart),
            id="main-container",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Start polling the render state."""
        self.set_interval(REFRESH_SECONDS, self._refresh_view)

    def _refresh_view(self) -> None:
        if self._status_bar:
            self._status_bar.update_state(self.state)

        if self.state.renders == self._seen_renders:
            return
        self._seen_renders = self.state.renders

        if self._depth_chart:
            self._depth_chart.update_depth(self.state.depth)
        if self._heatmap:
            self._heatmap.update_blocks(self.state.blocks)
        if self._volume_chart:
            self._volume_chart.update_volumes(self.state.volumes)

    async def action_quit(self) -> None:
        """Tell the dispatch loop to stop, then close the UI (bound to 'q' key)."""
        await self.actions.put(Quit())
        self.exit()

