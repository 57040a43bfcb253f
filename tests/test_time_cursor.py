from __future__ import annotations

import math
from datetime import UTC, datetime

import pytest

from pitwall.analysis.cursor import CursorSource, TimeCursor, resolve_time_cursor


def _at(minute: int, second: int = 10) -> datetime:
    return datetime(2024, 1, 1, 0, minute, second, tzinfo=UTC)


LAP_TIMES = {1: _at(0), 2: _at(1), 4: _at(3)}


def test_no_cursor_resolves_latest() -> None:
    resolved = resolve_time_cursor({1: _at(0), 2: _at(1)}, [1, 2])
    assert resolved.lap == 2
    assert resolved.source is CursorSource.LATEST
    assert resolved.timestamp == _at(1)


def test_latest_flag_resolves_latest() -> None:
    resolved = resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(latest=True, lap=1))
    assert resolved.lap == 4
    assert resolved.source is CursorSource.LATEST


def test_out_of_range_lap_resolves_nearest_known() -> None:
    resolved = resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(lap=3))
    assert resolved.lap == 2
    assert resolved.source is CursorSource.LAP

    assert resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(lap=99)).lap == 4
    assert resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(lap=-5)).lap == 1


def test_fractional_lap_resolves_nearest() -> None:
    assert resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(lap=3.6)).lap == 4


@pytest.mark.parametrize("lap", [math.nan, math.inf, -math.inf])
def test_non_finite_lap_falls_back_to_latest(lap: float) -> None:
    resolved = resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(lap=lap))
    assert resolved.lap == 4
    assert resolved.source is CursorSource.LATEST


def test_iso_timestamp_resolves_closest_lap_time() -> None:
    lap_times = {1: _at(0), 2: _at(1), 3: _at(2)}
    resolved = resolve_time_cursor(lap_times, [1, 2, 3], TimeCursor(iso="2024-01-01T00:01:40Z"))
    # Equidistant from laps 2 and 3.
    assert resolved.lap == 2
    assert resolved.source is CursorSource.TIME


def test_unparseable_iso_falls_back_to_latest() -> None:
    resolved = resolve_time_cursor(LAP_TIMES, [1, 2, 4], TimeCursor(iso="yesterday"))
    assert resolved.lap == 4
    assert resolved.source is CursorSource.LATEST


def test_iso_without_lap_times_falls_back_to_latest() -> None:
    resolved = resolve_time_cursor({}, [1, 2], TimeCursor(iso="2024-01-01T00:01:40Z"))
    assert resolved.lap == 2
    assert resolved.source is CursorSource.LATEST
    assert resolved.timestamp is None


def test_no_known_laps_resolves_none() -> None:
    resolved = resolve_time_cursor({}, [], TimeCursor(lap=3))
    assert resolved.lap is None
    assert resolved.source is CursorSource.NONE


def test_mapping_cursor_is_accepted() -> None:
    assert resolve_time_cursor(LAP_TIMES, [1, 2, 4], {"lap": 1}).lap == 1


@pytest.mark.parametrize("cursor", [{"lap": "x"}, {"lap": [1]}, {"iso": 5, "lap": "x"}])
def test_invalid_mapping_cursor_falls_back_to_latest(cursor: dict[str, object]) -> None:
    resolved = resolve_time_cursor(LAP_TIMES, [1, 2, 4], cursor)
    assert resolved.lap == 4
    assert resolved.source is CursorSource.LATEST
