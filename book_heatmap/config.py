"""
Runtime configuration for Book Heatmap.

Consumed once at construction; nothing is reconfigured while running.
Defaults match a 5 minute cache rendered over its last 3 minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

KRAKEN_WS_URL = "wss://ws.kraken.com/v2"


@dataclass(frozen=True)
class ViewerConfig:
    """Cache, grid and feed settings for one viewer process."""

    buffer_size: int = 1000                  # Dispatch queue capacity
    websocket_timeout_seconds: float = 200.0  # Fatal read timeout on the feed
    book_depth: int = 100                    # Levels per side requested from Kraken
    retention_window_seconds: int = 300      # BookHistory eviction window
    visual_window_seconds: int = 180         # Grid time range, <= retention
    time_resolution: int = 370               # Time cells in the grid
    price_resolution: int = 200              # Price cells in the grid
    refresh_interval_seconds: float = 1.0    # Pipeline run period
    ws_url: str = KRAKEN_WS_URL

    def __post_init__(self) -> None:
        positive = {
            "buffer_size": self.buffer_size,
            "websocket_timeout_seconds": self.websocket_timeout_seconds,
            "book_depth": self.book_depth,
            "retention_window_seconds": self.retention_window_seconds,
            "visual_window_seconds": self.visual_window_seconds,
            "time_resolution": self.time_resolution,
            "price_resolution": self.price_resolution,
            "refresh_interval_seconds": self.refresh_interval_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value!r}")

        if self.visual_window_seconds > self.retention_window_seconds:
            raise ValueError(
                f"visual_window_seconds ({self.visual_window_seconds}) must not exceed "
                f"retention_window_seconds ({self.retention_window_seconds})"
            )

        logger.debug("Resolved config: %s", self)
