"""Tolerant parsing of live-timing field values.

Every helper returns ``None`` for absent, empty or malformed input rather
than raising, so one odd timing line cannot break index construction.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

# "1:30.123" or "30.123"
_LAP_TIME_RE = re.compile(r"^(?:(?P<minutes>\d+):(?P<seconds_mm>\d{2})|(?P<seconds>\d{1,2}))\.(?P<millis>\d{3})$")

# Leader line during a race: "LAP 57".
_LEADER_LAP_RE = re.compile(r"^LAP\s*\d+$", re.IGNORECASE)
# Lapped car: "1 L", "1L", "+1 LAP", "2 LAPS".
_LAPPED_GAP_RE = re.compile(r"^\+?\d+\s*L(?:APS?)?$", re.IGNORECASE)

_UNORDERED_LINE = 999


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def parse_lap_time_ms(value: Any) -> float | None:
    """Parse a ``M:SS.mmm`` or ``SS.mmm`` lap/sector time into milliseconds."""
    if not isinstance(value, str):
        return None
    match = _LAP_TIME_RE.match(value.strip())
    if match is None:
        return None
    millis = int(match.group("millis"))
    if match.group("minutes") is not None:
        seconds = int(match.group("seconds_mm"))
        if seconds >= 60:
            return None
        return float(int(match.group("minutes")) * 60_000 + seconds * 1000 + millis)
    return float(int(match.group("seconds")) * 1000 + millis)


def parse_gap_seconds(value: Any) -> float | None:
    """Parse a gap or interval such as ``"+1.234"``.

    The leader's own ``"LAP 57"`` reads as ``0.0``. Lap-count gaps of lapped
    cars (``"+1 LAP"``, ``"2L"``) carry no time delta and read as ``None``.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if _LEADER_LAP_RE.match(text):
        return 0.0
    if is_lapped_gap(text):
        return None
    return safe_float(text.replace("+", ""))


def is_lapped_gap(value: Any) -> bool:
    """True for gaps reported as a lap count (``"1 L"``, ``"1L"``, ``"+2 LAPS"``)."""
    if value is None:
        return False
    return _LAPPED_GAP_RE.match(str(value).strip()) is not None


def parse_position(value: Any) -> int | None:
    if isinstance(value, str):
        value = value.strip()
    return safe_int(value)


def track_status_is_green(status: Any, message: Any) -> bool:
    status_text = "" if status is None else str(status).lower()
    message_text = "" if message is None else str(message).lower()
    if status_text in ("1", "green"):
        return True
    return "allclear" in message_text or "all clear" in message_text


def is_pit_lap(snapshot: Mapping[str, Any] | None) -> bool:
    if not isinstance(snapshot, Mapping):
        return False
    return any(bool(snapshot.get(key)) for key in ("IsPitLap", "InPit", "PitOut", "PitIn"))


def _line_order(line: Any) -> float:
    if not isinstance(line, Mapping):
        return _UNORDERED_LINE
    for key in ("Line", "Position"):
        parsed = safe_float(line.get(key))
        if parsed is not None:
            return parsed
    return _UNORDERED_LINE


def ordered_lines(lines: Mapping[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """Timing lines sorted by running order (``Line``, then ``Position``)."""
    items = [(number, line) for number, line in lines.items() if isinstance(line, Mapping)]
    return sorted(items, key=lambda item: _line_order(item[1]))


def _value_of(line: Mapping[str, Any], key: str) -> Any:
    field = line.get(key)
    if isinstance(field, Mapping):
        return field.get("Value")
    return None


def interval_to_ahead_seconds(line: Mapping[str, Any]) -> float | None:
    return parse_gap_seconds(_value_of(line, "IntervalToPositionAhead"))


def gap_to_leader_seconds(lines: Mapping[str, Any], driver: str) -> float | None:
    """Gap to the leader for *driver* within one set of timing lines.

    Lapped cars report ``GapToLeader`` as a lap count; for those the gap is
    rebuilt from the last un-lapped car's gap plus the intervals between.
    The result is ``None`` if any interval in that chain is itself a lap
    count or unparseable.
    """
    ordered = ordered_lines(lines)
    index = next((i for i, (number, _line) in enumerate(ordered) if number == driver), -1)
    if index < 0:
        return None
    line = ordered[index][1]

    gap_value = line.get("GapToLeader")
    if gap_value is not None and not is_lapped_gap(gap_value):
        return parse_gap_seconds(gap_value)

    if not _value_of(line, "IntervalToPositionAhead"):
        return None

    anchor = -1
    for i in range(index, -1, -1):
        if parse_gap_seconds(ordered[i][1].get("GapToLeader")) is not None:
            anchor = i
            break
    if anchor < 0:
        return None
    anchor_gap = parse_gap_seconds(ordered[anchor][1].get("GapToLeader"))
    if anchor_gap is None:
        return None

    summed = 0.0
    for i in range(anchor + 1, index + 1):
        seconds = interval_to_ahead_seconds(ordered[i][1])
        if seconds is None:
            return None
        summed += seconds
    return anchor_gap + summed


def _index_key(key: Any) -> float:
    parsed = safe_float(key)
    return math.inf if parsed is None else parsed


def _indexed_values(container: Any) -> list[Any]:
    """Values of a list, or of an index-keyed mapping (``{"0": .., "1": ..}``) in index order."""
    if isinstance(container, list):
        return container
    if isinstance(container, Mapping):
        return [container[key] for key in sorted(container.keys(), key=_index_key)]
    return []


def extract_sector_times_ms(snapshot: Mapping[str, Any], *, prefer_previous: bool = False) -> list[float] | None:
    """Sector times of a timing line, or ``None`` unless all three parse."""
    values: list[str] = []
    for sector in _indexed_values(snapshot.get("Sectors")):
        if not isinstance(sector, Mapping):
            continue
        candidates = [sector.get("PreviousValue"), sector.get("Value")]
        if not prefer_previous:
            candidates.reverse()
        picked = next((c for c in candidates if isinstance(c, str) and c), None)
        if picked:
            values.append(picked)
    if len(values) < 3:
        return None
    times = [parse_lap_time_ms(value) for value in values]
    if any(t is None for t in times):
        return None
    return [t for t in times if t is not None]


def extract_lap_time_ms(snapshot: Mapping[str, Any] | None, *, prefer_previous: bool = False) -> float | None:
    """Lap time of a timing line: last lap, then lap time, then summed sectors."""
    if not isinstance(snapshot, Mapping):
        return None
    for key in ("LastLapTime", "LapTime"):
        parsed = parse_lap_time_ms(_value_of(snapshot, key))
        if parsed is not None:
            return parsed
    sectors = extract_sector_times_ms(snapshot, prefer_previous=prefer_previous)
    if sectors is None:
        return None
    return sum(sectors)


def stint_for_lap(timing_app_state: Any, driver: str, lap: int) -> Mapping[str, Any] | None:
    """The TimingAppData stint covering *lap*, else the driver's latest stint."""
    if not isinstance(timing_app_state, Mapping):
        return None
    lines = timing_app_state.get("Lines")
    line = lines.get(driver) if isinstance(lines, Mapping) else None
    if not isinstance(line, Mapping):
        return None
    stints = [s for s in _indexed_values(line.get("Stints")) if isinstance(s, Mapping)]
    for stint in stints:
        start = safe_float(stint.get("StartLaps", 0))
        total = safe_float(stint.get("TotalLaps", 0))
        if start is None or total is None:
            continue
        if start + 1 <= lap <= start + total:
            return stint
    return stints[-1] if stints else None
