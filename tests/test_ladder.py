from __future__ import annotations

import pytest

from book_heatmap.datafeed.ladder import PriceLadder, apply_delta
from book_heatmap.types import Order


@pytest.fixture
def ladder() -> PriceLadder:
    return PriceLadder.from_orders([Order(3.0, 4.0), Order(1.0, 2.0), Order(2.0, 5.0)])


def test_from_orders_sorts_and_drops_zero_quantities():
    ladder = PriceLadder.from_orders([Order(5.0, 1.0), Order(4.0, 0.0), Order(3.0, 2.0)])

    assert ladder.prices() == [3.0, 5.0]
    assert 4.0 not in ladder
    assert list(ladder.items()) == [(3.0, 2.0), (5.0, 1.0)]


def test_from_orders_last_duplicate_wins():
    ladder = PriceLadder.from_orders([Order(1.0, 2.0), Order(1.0, 7.0)])
    assert ladder[1.0] == 7.0
    assert len(ladder) == 1


def test_zero_delta_removes_existing_price(ladder: PriceLadder):
    apply_delta(ladder, 2.0, 0.0)

    assert 2.0 not in ladder
    assert ladder.prices() == [1.0, 3.0]


def test_zero_delta_on_absent_price_is_noop(ladder: PriceLadder):
    before = ladder.copy()
    ladder.apply_delta(42.0, 0)
    assert ladder == before


def test_delta_upserts(ladder: PriceLadder):
    ladder.apply_delta(2.0, 9.0)
    ladder.apply_delta(1.5, 1.0)

    assert ladder[2.0] == 9.0
    assert ladder.prices() == [1.0, 1.5, 2.0, 3.0]


def test_apply_deltas_keeps_no_zero_entries(ladder: PriceLadder):
    ladder.apply_deltas([Order(1.0, 0.0), Order(4.0, 1.0), Order(4.0, 0.0), Order(3.0, 0.5)])

    assert list(ladder.items()) == [(2.0, 5.0), (3.0, 0.5)]
    assert all(quantity != 0 for _, quantity in ladder.items())


def test_lowest_highest_and_total(ladder: PriceLadder):
    assert ladder.lowest == 1.0
    assert ladder.highest == 3.0
    assert ladder.total_quantity() == pytest.approx(11.0)


def test_empty_ladder():
    ladder = PriceLadder()
    assert ladder.lowest is None
    assert ladder.highest is None
    assert ladder.total_quantity() == 0
    assert not ladder


def test_copy_is_independent(ladder: PriceLadder):
    clone = ladder.copy()
    clone.apply_delta(1.0, 0)
    clone.apply_delta(10.0, 1.0)

    assert 1.0 in ladder
    assert 10.0 not in ladder
    assert ladder.prices() == [1.0, 2.0, 3.0]
