"""Exceptions raised by the book cache, the feed and the dispatch loop."""

from __future__ import annotations


class BookHeatmapError(Exception):
    """Base class for all Book Heatmap errors."""


class ParseError(BookHeatmapError, ValueError):
    """
    An incoming update could not be parsed (usually its timestamp).

    Local failure: the update is rejected and the cache is left unchanged.
    """


class ConsistencyError(BookHeatmapError, RuntimeError):
    """
    One side of a BookHistory evicted a snapshot and the other did not.

    Not recoverable: the owning symbol's processing stops.
    """


class FeedError(BookHeatmapError, ConnectionError):
    """WebSocket connection failure. Propagated as-is, never retried here."""


class FeedTimeoutError(FeedError):
    """No message arrived within the configured read timeout."""


class DispatchError(BookHeatmapError, RuntimeError):
    """The dispatch loop received an update for a symbol it does not track."""
