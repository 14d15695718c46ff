from __future__ import annotations

from book_heatmap import benchmark
from book_heatmap.datafeed.history import parse_timestamp


def test_mock_data_is_well_formed():
    snapshot = benchmark.generate_mock_snapshot(levels=10)

    assert len(snapshot.bids) == 10 and len(snapshot.asks) == 10
    assert max(p for p, _ in snapshot.bids) < min(p for p, _ in snapshot.asks)
    assert parse_timestamp(snapshot.timestamp) == benchmark.BASE_TIME


def test_populated_history_respects_window():
    history = benchmark.populated_history(window=10, seconds=30)
    assert history.asks.timestamps() == list(range(benchmark.BASE_TIME + 19, benchmark.BASE_TIME + 30))


def test_benchmarks_run(capsys):
    benchmark.benchmark_history_updates(iterations=20)
    assert "Updates applied: 20" in capsys.readouterr().out
