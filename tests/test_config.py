from __future__ import annotations

import dataclasses

import pytest

from book_heatmap.config import KRAKEN_WS_URL, ViewerConfig


def test_defaults():
    config = ViewerConfig()

    assert config.retention_window_seconds == 300
    assert config.visual_window_seconds == 180
    assert config.time_resolution == 370
    assert config.price_resolution == 200
    assert config.book_depth == 100
    assert config.buffer_size == 1000
    assert config.ws_url == KRAKEN_WS_URL


def test_config_is_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        ViewerConfig().time_resolution = 10


def test_visual_window_may_equal_retention():
    assert ViewerConfig(retention_window_seconds=60, visual_window_seconds=60).visual_window_seconds == 60


def test_visual_window_must_fit_in_retention():
    with pytest.raises(ValueError, match="visual_window_seconds"):
        ViewerConfig(retention_window_seconds=60, visual_window_seconds=61)


@pytest.mark.parametrize(
    "field",
    ["buffer_size", "book_depth", "time_resolution", "price_resolution", "refresh_interval_seconds"],
)
def test_non_positive_values_are_rejected(field):
    with pytest.raises(ValueError, match=field):
        ViewerConfig(**{field: 0})
