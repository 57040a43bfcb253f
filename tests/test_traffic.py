from __future__ import annotations

import math

import pytest

from pitwall.analysis.traffic import TrafficLabel, TrafficThresholds, classify_traffic


def test_close_car_ahead_is_traffic() -> None:
    assert classify_traffic(0.5, 2.0, 90_000, True) is TrafficLabel.TRAFFIC


def test_clear_air_on_green_is_clean() -> None:
    assert classify_traffic(2.5, 2.0, 90_000, True) is TrafficLabel.CLEAN


def test_clear_air_under_yellow_is_neutral() -> None:
    assert classify_traffic(2.5, 2.0, 90_000, False) is TrafficLabel.NEUTRAL


def test_close_car_behind_is_traffic() -> None:
    assert classify_traffic(3.0, 0.4, 90_200, True) is TrafficLabel.TRAFFIC


def test_traffic_wins_regardless_of_track_status() -> None:
    assert classify_traffic(0.5, 5.0, 90_000, False) is TrafficLabel.TRAFFIC


def test_between_thresholds_is_neutral() -> None:
    # Outside traffic (1.08s) but inside clean (1.7s) ahead at a 90s lap.
    assert classify_traffic(1.5, 5.0, 90_000, True) is TrafficLabel.NEUTRAL


def test_thresholds_scale_with_lap_time() -> None:
    # 1.1s ahead is traffic on a 100s lap (1.2s) but not on a 60s lap (1.0s base).
    assert classify_traffic(1.1, 5.0, 100_000, True) is TrafficLabel.TRAFFIC
    assert classify_traffic(1.1, 5.0, 60_000, True) is TrafficLabel.NEUTRAL


@pytest.mark.parametrize(
    ("ahead", "behind", "lap_ms"),
    [
        (None, 2.0, 90_000),
        (2.0, None, 90_000),
        (2.0, 2.0, None),
        (math.nan, 2.0, 90_000),
        (2.0, math.inf, 90_000),
        (2.0, 2.0, math.nan),
    ],
)
def test_missing_or_non_finite_inputs_are_unknown(
    ahead: float | None, behind: float | None, lap_ms: float | None
) -> None:
    assert classify_traffic(ahead, behind, lap_ms, True) is TrafficLabel.UNKNOWN


def test_custom_thresholds() -> None:
    strict = TrafficThresholds(traffic_ahead_base=3.0)
    assert classify_traffic(2.5, 2.0, 90_000, True, strict) is TrafficLabel.TRAFFIC


def test_label_values() -> None:
    assert [label.value for label in TrafficLabel] == ["traffic", "clean", "neutral", "unknown"]
