"""
Book Heatmap - Order book depth, volume and heatmap rendering for Kraken spot.

Architecture:
- datafeed/: Kraken WebSocket client and the time-windowed order book cache
- engine/: Grid planning and Gaussian kernel density splats
- ui/: Depth curve, volume and heatmap rendering (Textual TUI)
"""

__version__ = "0.1.0"
