#!/usr/bin/env python3
"""
Micro-benchmark for Book Heatmap performance.

Tests:
1. BookHistory update throughput (clone + deltas + eviction)
2. Window extraction speed (what every pipeline run copies)
3. Heatmap splat speed
4. Full pipeline run speed

Usage:
    python -m book_heatmap.benchmark
"""

from __future__ import annotations

import random
import time
from datetime import datetime, timezone
from statistics import mean, stdev

from .datafeed.history import BookHistory
from .engine.pipeline import Pipeline, splat_blocks
from .types import Booked, Order

BASE_TIME = 1_700_000_000


def rfc3339(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def generate_mock_snapshot(base_price: float = 600.0, levels: int = 100, timestamp: int = BASE_TIME) -> Booked:
    """Generate a mock full book snapshot."""
    tick_size = 0.01

    bids = []
    asks = []

    for i in range(levels):
        bids.append(Order(round(base_price - (i + 1) * tick_size, 2), random.uniform(1, 100)))
        asks.append(Order(round(base_price + (i + 1) * tick_size, 2), random.uniform(1, 100)))

    return Booked(symbol="BENCH/USD", timestamp=rfc3339(timestamp), bids=bids, asks=asks)


def generate_mock_update(base_price: float, timestamp: int, changes: int = 50) -> Booked:
    """Generate a mock book delta."""
    tick_size = 0.01

    bids = []
    asks = []

    for _ in range(changes // 2):
        offset = random.randint(1, 100)

        # Random qty (0 = remove level)
        bid_qty = random.uniform(0, 100) if random.random() > 0.2 else 0.0
        ask_qty = random.uniform(0, 100) if random.random() > 0.2 else 0.0

        bids.append(Order(round(base_price - offset * tick_size, 2), bid_qty))
        asks.append(Order(round(base_price + offset * tick_size, 2), ask_qty))

    return Booked(symbol="BENCH/USD", timestamp=rfc3339(timestamp), bids=bids, asks=asks)


def populated_history(window: int = 300, seconds: int = 300) -> BookHistory:
    """History with one snapshot per second over ``seconds``."""
    history = BookHistory(window)
    history.update(generate_mock_snapshot())
    for i in range(1, seconds):
        history.update(generate_mock_update(600.0, BASE_TIME + i))
    return history


def benchmark_history_updates(iterations: int = 10000) -> None:
    """Benchmark BookHistory update throughput."""
    print("\n=== Book History Update Benchmark ===")

    history = BookHistory(300)
    history.update(generate_mock_snapshot())

    # Pre-generate updates, one per second so eviction kicks in after 300
    updates = [generate_mock_update(600.0, BASE_TIME + i + 1, changes=50) for i in range(iterations)]

    # Benchmark
    start = time.perf_counter()
    for u in updates:
        history.update(u)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Updates applied: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} updates/sec")
    print(f"  Per update: {elapsed/iterations*1_000_000:.1f}µs")


def _timed(label: str, iterations: int, fn) -> None:
    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        fn()
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  {label}: {1000/avg_time:,.1f}/sec")


def benchmark_extract_window(iterations: int = 100) -> None:
    """Benchmark full-history deep copy."""
    print("\n=== Window Extraction Benchmark ===")
    history = populated_history()
    _timed("Copies", iterations, lambda: history.extract_window(0, 2 ** 63 - 1))


def benchmark_heatmap(iterations: int = 5) -> None:
    """Benchmark the 2D splat on a full visual window."""
    print("\n=== Heatmap Splat Benchmark ===")
    history = populated_history()
    grid = Pipeline(180, 370, 200).planner.grid(history)
    _timed("Heatmaps", iterations, lambda: splat_blocks(grid, history))


def benchmark_pipeline(iterations: int = 5) -> None:
    """Benchmark a full pipeline run (what every refresh costs)."""
    print("\n=== Full Pipeline Benchmark ===")
    history = populated_history()
    pipeline = Pipeline(180, 370, 200)
    _timed("Max refresh rate", iterations, lambda: pipeline.run(history))


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Book Heatmap Performance Benchmark")
    print("=" * 60)

    benchmark_history_updates()
    benchmark_extract_window()
    benchmark_heatmap()
    benchmark_pipeline()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
