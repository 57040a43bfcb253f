from __future__ import annotations

import pytest

from pitwall.analysis.metrics import (
    classify_track_phase,
    compute_gap_trains,
    compute_phase_periods,
    compute_pit_lane_time_stats,
    compute_sc_vsc_deltas,
    parse_duration_ms,
)
from pitwall.analysis.models import LapRecord, SampleExclusion, TrackPhase, TrackStatusSnapshot

GREEN = TrackStatusSnapshot(status="1", message="AllClear", is_green=True)
SAFETY_CAR = TrackStatusSnapshot(status="4", message="SCDeployed", is_green=False)
VIRTUAL_SAFETY_CAR = TrackStatusSnapshot(status="6", message="VSCDeployed", is_green=False)


def _lap(lap: int, status: TrackStatusSnapshot | None, **times: float | None) -> dict[str, LapRecord]:
    return {
        driver: LapRecord(driver=driver, lap=lap, lap_time_ms=time_ms, track_status=status)
        for driver, time_ms in times.items()
    }


# ------------------------------------------------------------------
# Track phases
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "message", "expected"),
    [
        ("1", None, TrackPhase.GREEN),
        ("green", None, TrackPhase.GREEN),
        ("2", "Yellow", TrackPhase.YELLOW),
        ("4", None, TrackPhase.SC),
        ("5", None, TrackPhase.RED),
        ("6", None, TrackPhase.VSC),
        ("7", "VSCEnding", TrackPhase.VSC),
        (None, "AllClear", TrackPhase.GREEN),
        (None, "Virtual Safety Car deployed", TrackPhase.VSC),
        ("9", "VSC ending", TrackPhase.VSC),
        (None, "Safety Car in this lap", TrackPhase.SC),
        (None, "SC deployed", TrackPhase.SC),
        (None, "Red flag", TrackPhase.RED),
        (None, "Double yellow in sector 2", TrackPhase.YELLOW),
        (None, None, TrackPhase.UNKNOWN),
        ("3", "", TrackPhase.UNKNOWN),
    ],
)
def test_classify_track_phase(status: object, message: object, expected: TrackPhase) -> None:
    assert classify_track_phase(status, message) is expected


def test_phase_periods_merge_consecutive_laps() -> None:
    periods = compute_phase_periods(
        [
            (3, TrackPhase.SC),
            (1, TrackPhase.GREEN),
            (2, TrackPhase.GREEN),
            (4, TrackPhase.SC),
            (6, TrackPhase.SC),
        ]
    )
    assert [(p.phase, p.start_lap, p.end_lap, p.lap_count) for p in periods] == [
        (TrackPhase.GREEN, 1, 2, 2),
        (TrackPhase.SC, 3, 4, 2),
        # Lap 5 is missing, so lap 6 starts a new period.
        (TrackPhase.SC, 6, 6, 1),
    ]


def test_phase_periods_of_nothing() -> None:
    assert compute_phase_periods([]) == []


# ------------------------------------------------------------------
# SC / VSC deltas
# ------------------------------------------------------------------


def test_sc_vsc_deltas_use_field_median_per_lap() -> None:
    by_lap = {
        1: _lap(1, GREEN, a=90_000, b=91_000, c=95_000),
        2: _lap(2, GREEN, a=90_000, b=92_000, c=93_000),
        3: _lap(3, VIRTUAL_SAFETY_CAR, a=110_000, b=112_000),
        5: _lap(5, SAFETY_CAR, a=None, b=None),
    }

    report = compute_sc_vsc_deltas(by_lap, 1, 5)

    assert [sample.lap_time_ms for sample in report.laps] == [91_000, 92_000, 111_000, None, None]
    assert report.laps[3].excluded is SampleExclusion.MISSING_LAP
    assert report.laps[4].excluded is SampleExclusion.NO_LAP_TIMES
    assert report.baseline is not None
    assert report.baseline.median_lap_ms == 91_500
    assert report.baseline.min_lap_ms == 91_000
    assert report.phases[TrackPhase.VSC].delta_to_green_ms == 19_500
    assert report.phases[TrackPhase.SC].samples == 0
    assert report.phases[TrackPhase.SC].delta_to_green_ms is None
    assert [(p.phase, p.start_lap, p.end_lap) for p in report.periods] == [
        (TrackPhase.GREEN, 1, 2),
        (TrackPhase.VSC, 3, 3),
        (TrackPhase.UNKNOWN, 4, 4),
        (TrackPhase.SC, 5, 5),
    ]


def test_sc_vsc_deltas_for_one_driver_skip_pit_laps() -> None:
    by_lap = {
        1: _lap(1, GREEN, a=90_000),
        2: {"a": LapRecord(driver="a", lap=2, lap_time_ms=110_000, pit_in=True, track_status=SAFETY_CAR)},
        3: _lap(3, SAFETY_CAR, a=120_000),
        4: _lap(4, GREEN, b=91_000),
        5: _lap(5, GREEN, a=None),
    }

    report = compute_sc_vsc_deltas(by_lap, 1, 5, driver="a")

    assert [sample.excluded for sample in report.laps] == [
        None,
        SampleExclusion.PIT_LAP,
        None,
        SampleExclusion.MISSING_DRIVER,
        SampleExclusion.MISSING_LAP_TIME,
    ]
    assert report.phases[TrackPhase.SC].median_lap_ms == 120_000
    assert report.phases[TrackPhase.SC].delta_to_green_ms == 30_000

    with_pits = compute_sc_vsc_deltas(by_lap, 1, 5, driver="a", include_pit_laps=True)
    assert with_pits.phases[TrackPhase.SC].samples == 2
    assert with_pits.phases[TrackPhase.SC].avg_lap_ms == 115_000


def test_sc_vsc_deltas_without_green_laps_have_no_baseline() -> None:
    report = compute_sc_vsc_deltas({1: _lap(1, SAFETY_CAR, a=120_000)}, 1, 1)
    assert report.baseline is None
    assert report.phases[TrackPhase.SC].median_lap_ms == 120_000
    assert report.phases[TrackPhase.SC].delta_to_green_ms is None


def test_lap_without_track_status_is_unknown_phase() -> None:
    report = compute_sc_vsc_deltas({1: _lap(1, None, a=90_000)}, 1, 1)
    assert report.laps[0].phase is TrackPhase.UNKNOWN
    assert report.phases[TrackPhase.UNKNOWN].samples == 1


# ------------------------------------------------------------------
# Gap trains
# ------------------------------------------------------------------


def _running_order(*intervals: float | None, status: TrackStatusSnapshot | None = GREEN) -> dict[str, LapRecord]:
    return {
        str(position): LapRecord(
            driver=str(position),
            lap=10,
            position=position,
            interval_to_ahead_sec=interval,
            track_status=status,
        )
        for position, interval in enumerate(intervals, start=1)
    }


def test_gap_trains_split_on_large_interval() -> None:
    records = _running_order(None, 0.4, 0.6, 2.5, 0.9, 0.3, 0.7)

    report = compute_gap_trains(10, records, threshold_sec=1.0, min_cars=3)

    assert report.phase is TrackPhase.GREEN
    assert [[car.driver for car in train.cars] for train in report.trains] == [["1", "2", "3"], ["4", "5", "6", "7"]]
    assert [train.max_interval_to_ahead_sec for train in report.trains] == [0.6, 0.9]


def test_gap_trains_drop_short_runs_and_unpositioned_cars() -> None:
    records = _running_order(None, 0.4, 3.0, 0.5)
    records["99"] = LapRecord(driver="99", lap=10, interval_to_ahead_sec=0.1)

    assert compute_gap_trains(10, records, min_cars=3).trains == ()
    pairs = compute_gap_trains(10, records, min_cars=2, name_for=lambda driver: f"#{driver}")
    assert [[car.name for car in train.cars] for train in pairs.trains] == [["#1", "#2"], ["#3", "#4"]]


def test_gap_trains_threshold_is_inclusive() -> None:
    report = compute_gap_trains(10, _running_order(None, 1.0, 1.0), threshold_sec=1.0)
    assert len(report.trains) == 1


def test_gap_trains_under_safety_car() -> None:
    records = _running_order(None, 0.4, 0.6, status=SAFETY_CAR)

    skipped = compute_gap_trains(10, records, require_green=True)
    assert skipped.skipped_reason == "non-green"
    assert skipped.trains == ()

    counted = compute_gap_trains(10, records)
    assert counted.phase is TrackPhase.SC
    assert counted.skipped_reason is None
    assert len(counted.trains) == 1


# ------------------------------------------------------------------
# Pit-lane time
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("22.5", 22_500.0),
        ("+21.345", 21_345.0),
        ("1:02.3", 62_300.0),
        ("1:00:02.3", 3_602_300.0),
        (19.25, 19_250.0),
        (20, 20_000.0),
        ("", None),
        ("abc", None),
        ("1::2", None),
        (None, None),
        (True, None),
        (float("nan"), None),
    ],
)
def test_parse_duration_ms(value: object, expected: float | None) -> None:
    assert parse_duration_ms(value) == expected


PIT_TIMES = {
    "44": [{"Duration": "22.5", "Lap": "12"}, {"Duration": "24.1", "Lap": "40"}],
    "1": [{"Duration": "21.0", "Lap": "15"}],
    "10": [{"Duration": "", "Lap": "18"}, "garbage"],
}


def test_pit_lane_time_median_over_field() -> None:
    stats = compute_pit_lane_time_stats(PIT_TIMES, name_for={"44": "Lewis Hamilton"}.get)

    assert stats.method == "median"
    assert stats.samples == 3
    assert stats.pit_lane_time_ms == 22_500
    assert [(d.driver, d.samples, d.pit_lane_time_ms) for d in stats.by_driver] == [
        ("1", 1, 21_000),
        ("10", 0, None),
        ("44", 2, 23_300),
    ]
    assert stats.by_driver[2].name == "Lewis Hamilton"


def test_pit_lane_time_mean_with_lap_range_and_driver() -> None:
    stats = compute_pit_lane_time_stats(PIT_TIMES, method="mean", start_lap=10, end_lap=20)
    assert stats.samples == 2
    assert stats.pit_lane_time_ms == 21_750

    one = compute_pit_lane_time_stats(PIT_TIMES, driver="44", end_lap=30)
    assert [d.driver for d in one.by_driver] == ["44"]
    assert one.pit_lane_time_ms == 22_500


def test_pit_lane_time_without_stops() -> None:
    stats = compute_pit_lane_time_stats({})
    assert stats.samples == 0
    assert stats.pit_lane_time_ms is None
    assert stats.by_driver == ()
