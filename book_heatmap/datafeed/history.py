"""
Time-windowed order book history.

Keeps one PriceLadder snapshot per second per side, built by applying each
incoming delta to a clone of the latest snapshot. Eviction is lazy: the update
that pushes the span past the window evicts the single oldest snapshot.

Locking:
- One ReadWriteLock per side
- update() takes both write locks, asks before bids
- Two-sided reads take both read locks, asks before bids
- Pipeline runs should work on extract_window() copies, never on the live cache
"""

from __future__ import annotations

import logging
import math
import re
import threading
from bisect import bisect_left, bisect_right, insort
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional, Tuple

from ..errors import ConsistencyError, ParseError
from ..types import Booked, Order
from .ladder import PriceLadder

logger = logging.getLogger(__name__)

Snapshot = Tuple[int, PriceLadder]
Eviction = Optional[Tuple[Snapshot, Snapshot]]  # (asks, bids)


# Full date-time with seconds and an explicit offset
_RFC3339 = re.compile(
    r'[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})'
)


def parse_timestamp(text: str) -> int:
    """
    Parse an RFC 3339 timestamp into integer epoch seconds.

    Fractional seconds are dropped. Date-only, minute-precision, basic-format
    and offset-less strings are rejected even though fromisoformat takes them.
    Raises ParseError if the value is not an RFC 3339 timestamp string.
    """
    if not isinstance(text, str):
        raise ParseError(f"Timestamp must be a string, got {type(text).__name__}")
    if _RFC3339.fullmatch(text) is None:
        raise ParseError(f"Not an RFC 3339 timestamp: {text!r}")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Unparseable timestamp {text!r}: {e}") from e

    return math.floor(parsed.timestamp())


class ReadWriteLock:
    """
    Shared/exclusive lock: many readers or one writer.

    Waiting writers block new readers so ingestion is never starved by renders.
    Not reentrant.
    """

    __slots__ = ('_cond', '_readers', '_writer', '_writers_waiting')

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class BookHistorySide:
    """
    timestamp -> PriceLadder for one book side, ascending by timestamp.

    Public methods take the side's lock. The underscore variants assume the
    caller already holds it (BookHistory locks both sides itself).
    """

    __slots__ = ('window_seconds', 'lock', '_snapshots', '_times')

    def __init__(self, window_seconds: int) -> None:
        self.window_seconds = window_seconds
        self.lock = ReadWriteLock()
        self._snapshots: dict[int, PriceLadder] = {}
        self._times: list[int] = []  # Ascending, same key set as _snapshots

    # -- writes -------------------------------------------------------------

    def update(self, timestamp: int, orders: Iterable[Order]) -> Snapshot | None:
        """
        Insert the snapshot for ``timestamp`` and evict if the span overflows.

        Returns the evicted (timestamp, ladder) or None.
        """
        with self.lock.write():
            return self._update(timestamp, orders)

    def _update(self, timestamp: int, orders: Iterable[Order]) -> Snapshot | None:
        if not self._times:
            self._insert(timestamp, PriceLadder.from_orders(orders))
            return None

        latest = self._snapshots[self._times[-1]].copy()
        latest.apply_deltas(orders)
        self._insert(timestamp, latest)

        span = abs(self._times[-1] - self._times[0])
        if span > self.window_seconds:
            return self._pop_oldest()
        return None

    def _insert(self, timestamp: int, ladder: PriceLadder) -> None:
        if timestamp not in self._snapshots:
            insort(self._times, timestamp)
        self._snapshots[timestamp] = ladder

    def _pop_oldest(self) -> Snapshot:
        oldest = self._times.pop(0)
        return oldest, self._snapshots.pop(oldest)

    # -- reads --------------------------------------------------------------

    def latest(self) -> Snapshot:
        """Copy of the newest snapshot, or (0, empty ladder) if there is none."""
        with self.lock.read():
            return self._latest()

    def _latest(self) -> Snapshot:
        if not self._times:
            return 0, PriceLadder()
        newest = self._times[-1]
        return newest, self._snapshots[newest].copy()

    def _range(self, start: int, end: int) -> list[int]:
        """Timestamps in [start, end], ascending."""
        lo = bisect_left(self._times, start)
        hi = bisect_right(self._times, end)
        return self._times[lo:hi]

    def integrate_window(self, start: int, end: int) -> dict[int, float]:
        """timestamp -> total resting quantity, for snapshots in [start, end]."""
        with self.lock.read():
            return self._integrate_window(start, end)

    def _integrate_window(self, start: int, end: int) -> dict[int, float]:
        return {
            timestamp: self._snapshots[timestamp].total_quantity()
            for timestamp in self._range(start, end)
        }

    def extract_window(self, start: int, end: int) -> BookHistorySide:
        """Deep copy of the snapshots in [start, end]; its window is |end - start|."""
        with self.lock.read():
            return self._extract_window(start, end)

    def _extract_window(self, start: int, end: int) -> BookHistorySide:
        extracted = BookHistorySide(abs(end - start))
        extracted._times = self._range(start, end)
        extracted._snapshots = {
            timestamp: self._snapshots[timestamp].copy()
            for timestamp in extracted._times
        }
        return extracted

    def snapshots(self, start: int, end: int) -> list[Snapshot]:
        """Copies of the (timestamp, ladder) snapshots in [start, end], ascending."""
        with self.lock.read():
            return [
                (timestamp, self._snapshots[timestamp].copy())
                for timestamp in self._range(start, end)
            ]

    def extremes(self, start: int, end: int) -> list[tuple[float, float]]:
        """(lowest, highest) price of each non-empty snapshot in [start, end]."""
        with self.lock.read():
            return [
                (ladder.lowest, ladder.highest)
                for ladder in (self._snapshots[t] for t in self._range(start, end))
                if ladder
            ]

    def iter_levels(self, start: int, end: int) -> Iterator[tuple[int, float, float]]:
        """
        Every (timestamp, price, quantity) triple in [start, end].

        Holds the read lock while iterating; meant for extracted copies.
        """
        with self.lock.read():
            for timestamp in self._range(start, end):
                for price, quantity in self._snapshots[timestamp].items():
                    yield timestamp, price, quantity

    def timestamps(self) -> list[int]:
        with self.lock.read():
            return list(self._times)

    @property
    def newest_timestamp(self) -> int | None:
        with self.lock.read():
            return self._times[-1] if self._times else None

    def __len__(self) -> int:
        return len(self._times)

    def __repr__(self) -> str:
        return f"BookHistorySide(window_seconds={self.window_seconds}, snapshots={len(self._times)})"


class BookHistory:
    """
    Bid and ask BookHistorySide pair for one symbol.

    Only the dispatch loop calls update(); everything else reads.
    """

    __slots__ = ('window_seconds', 'asks', 'bids')

    def __init__(self, window_seconds: int) -> None:
        self.window_seconds = window_seconds
        self.asks = BookHistorySide(window_seconds)
        self.bids = BookHistorySide(window_seconds)

    @classmethod
    def _from_sides(cls, window_seconds: int, asks: BookHistorySide, bids: BookHistorySide) -> BookHistory:
        history = cls.__new__(cls)
        history.window_seconds = window_seconds
        history.asks = asks
        history.bids = bids
        return history

    def update(self, booked: Booked) -> Eviction:
        """
        Apply one book message to both sides.

        Returns ((ask_ts, ask_ladder), (bid_ts, bid_ladder)) when both sides evicted,
        None when neither did.

        Raises:
            ParseError: booked.timestamp is unparseable; nothing is modified.
            ConsistencyError: only one side evicted. Both sides have already
                been updated by then; the cache is not rolled back.
        """
        incoming_time = parse_timestamp(booked.timestamp)

        with self.asks.lock.write(), self.bids.lock.write():
            evicted_asks = self.asks._update(incoming_time, booked.asks)
            evicted_bids = self.bids._update(incoming_time, booked.bids)

        if evicted_asks is not None and evicted_bids is not None:
            logger.debug(
                "%s: evicted asks@%d bids@%d",
                booked.symbol, evicted_asks[0], evicted_bids[0],
            )
            return evicted_asks, evicted_bids
        if evicted_asks is not None:
            raise ConsistencyError(
                f"{booked.symbol}: removed entry from asks during update but not bids"
            )
        if evicted_bids is not None:
            raise ConsistencyError(
                f"{booked.symbol}: removed entry from bids during update but not asks"
            )
        return None

    def latest(self) -> tuple[Snapshot, Snapshot]:
        """(asks, bids) newest snapshots, each (0, empty) when the side is empty."""
        with self.asks.lock.read(), self.bids.lock.read():
            return self.asks._latest(), self.bids._latest()

    def integrate_window(self, start: int, end: int) -> tuple[dict[int, float], dict[int, float]]:
        """(asks, bids) timestamp -> total quantity for snapshots in [start, end]."""
        with self.asks.lock.read(), self.bids.lock.read():
            return (
                self.asks._integrate_window(start, end),
                self.bids._integrate_window(start, end),
            )

    def extract_window(self, start: int, end: int) -> BookHistory:
        """Independent deep copy of [start, end] on both sides, window |end - start|."""
        with self.asks.lock.read(), self.bids.lock.read():
            asks = self.asks._extract_window(start, end)
            bids = self.bids._extract_window(start, end)
        return BookHistory._from_sides(abs(end - start), asks, bids)

    def __len__(self) -> int:
        return max(len(self.asks), len(self.bids))

    def __repr__(self) -> str:
        return (
            f"BookHistory(window_seconds={self.window_seconds}, "
            f"asks={len(self.asks)}, bids={len(self.bids)})"
        )
