"""
Price ladder: one side of the order book at one instant.

HOT PATH: apply_deltas() runs for every book message, on a fresh clone of the latest snapshot.

Performance strategy:
1. Use dict[float, float] for O(1) lookup/update of individual prices
2. Keep a sorted price list next to it, maintained with bisect (no full re-sort)
3. copy() is two shallow container copies; floats are immutable
"""

from __future__ import annotations

from bisect import bisect_left, insort
from typing import Iterable, Iterator

from ..types import Order


class PriceLadder:
    """
    Ordered price -> quantity map for one book side.

    Invariant: no stored quantity is 0. Ascending by price.

    Thread-safety: NOT thread-safe. Snapshots own their ladder exclusively.
    """

    __slots__ = ('_levels', '_prices')

    def __init__(self) -> None:
        # Core data: price -> quantity
        self._levels: dict[float, float] = {}
        # Ascending, same key set as _levels
        self._prices: list[float] = []

    @classmethod
    def from_orders(cls, orders: Iterable[Order]) -> PriceLadder:
        """
        Build a ladder from a full snapshot payload.

        Zero quantities are dropped; a repeated price keeps its last quantity.
        """
        ladder = cls()
        for price, quantity in orders:
            price, quantity = float(price), float(quantity)
            if quantity == 0:
                ladder._levels.pop(price, None)
            else:
                ladder._levels[price] = quantity
        ladder._prices = sorted(ladder._levels)
        return ladder

    def apply_delta(self, price: float, quantity: float) -> None:
        """
        Apply one level change. HOT PATH.

        quantity == 0 removes the price (no-op when absent), anything else upserts it.
        """
        price, quantity = float(price), float(quantity)
        if quantity == 0:
            if self._levels.pop(price, None) is not None:
                del self._prices[bisect_left(self._prices, price)]
            return

        if price not in self._levels:
            insort(self._prices, price)
        self._levels[price] = quantity

    def apply_deltas(self, orders: Iterable[Order]) -> None:
        """Apply a batch of level changes in order."""
        for price, quantity in orders:
            self.apply_delta(price, quantity)

    def copy(self) -> PriceLadder:
        """Independent clone."""
        clone = PriceLadder()
        clone._levels = self._levels.copy()
        clone._prices = self._prices.copy()
        return clone

    @property
    def lowest(self) -> float | None:
        """Lowest price, or None if empty."""
        return self._prices[0] if self._prices else None

    @property
    def highest(self) -> float | None:
        """Highest price, or None if empty."""
        return self._prices[-1] if self._prices else None

    def total_quantity(self) -> float:
        """Sum of all resting quantities."""
        return sum(self._levels[price] for price in self._prices)

    def prices(self) -> list[float]:
        return list(self._prices)

    def items(self) -> Iterator[tuple[float, float]]:
        """(price, quantity) pairs, ascending by price."""
        levels = self._levels
        for price in self._prices:
            yield price, levels[price]

    def __getitem__(self, price: float) -> float:
        return self._levels[float(price)]

    def __contains__(self, price: object) -> bool:
        return price in self._levels

    def __len__(self) -> int:
        return len(self._prices)

    def __iter__(self) -> Iterator[float]:
        return iter(self._prices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PriceLadder):
            return NotImplemented
        return self._levels == other._levels

    def __repr__(self) -> str:
        return f"PriceLadder({list(self.items())!r})"


def apply_delta(ladder: PriceLadder, price: float, quantity: float) -> None:
    """Apply one level change to ``ladder`` (see PriceLadder.apply_delta)."""
    ladder.apply_delta(price, quantity)
