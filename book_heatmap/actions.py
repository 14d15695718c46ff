"""
Messages routed through the dispatch loop.

Every producer (feed, UI, refresh timer) talks to the cache owner only through these.
"""

from __future__ import annotations

from typing import NamedTuple, Union

from .types import Booked, TickerState


class SubscribeTicker(NamedTuple):
    symbol: str


class UnsubscribeTicker(NamedTuple):
    symbol: str


class UpdateBook(NamedTuple):
    booked: Booked


class UpdateTicker(NamedTuple):
    ticker: TickerState


class RunPipeline(NamedTuple):
    symbol: str


class Warn(NamedTuple):
    message: str


class Inform(NamedTuple):
    message: str


class Quit(NamedTuple):
    pass


Action = Union[
    SubscribeTicker,
    UnsubscribeTicker,
    UpdateBook,
    UpdateTicker,
    RunPipeline,
    Warn,
    Inform,
    Quit,
]
