from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

import pytest

from book_heatmap.datafeed.history import BookHistory
from book_heatmap.types import Booked, Order

# asks sum to 14.0, bids to 6.0
SCENARIO_BIDS = [(1.0, 2.0), (3.0, 4.0)]
SCENARIO_ASKS = [(5.0, 6.0), (7.0, 8.0)]


def rfc3339(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z")


MakeBooked = Callable[..., Booked]


@pytest.fixture
def make_booked() -> MakeBooked:
    """Factory: make_booked(t, bids=[(price, qty)], asks=[...], symbol="XBT/USD")."""

    def _make(
        t: int,
        bids: Sequence[tuple[float, float]] = SCENARIO_BIDS,
        asks: Sequence[tuple[float, float]] = SCENARIO_ASKS,
        symbol: str = "XBT/USD",
    ) -> Booked:
        return Booked(
            symbol=symbol,
            timestamp=rfc3339(t),
            bids=[Order(p, q) for p, q in bids],
            asks=[Order(p, q) for p, q in asks],
        )

    return _make


@pytest.fixture
def scenario_history(make_booked: MakeBooked) -> BookHistory:
    """60 identical updates at t=0..59 in a 60 second window."""
    history = BookHistory(60)
    for t in range(60):
        assert history.update(make_booked(t)) is None
    return history
