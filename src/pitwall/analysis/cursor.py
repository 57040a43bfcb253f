"""Resolution of "as of" cursors onto known lap boundaries."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError


class CursorSource(StrEnum):
    LATEST = "latest"
    LAP = "lap"
    TIME = "time"
    NONE = "none"


class TimeCursor(BaseModel):
    """A caller-supplied position in the session.

    Set ``lap`` for a lap number, ``iso`` for an ISO-8601 timestamp, or
    ``latest`` (or nothing at all) for the most recent lap.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    lap: float | None = None
    iso: str | None = None
    latest: bool = False


class ResolvedCursor(BaseModel):
    model_config = ConfigDict(frozen=True)

    lap: int | None
    timestamp: datetime | None
    source: CursorSource


def _parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _nearest_lap(sorted_laps: list[int], target: float) -> int:
    best = sorted_laps[0]
    for lap in sorted_laps[1:]:
        # Strict comparison over ascending laps keeps ties on the lower lap.
        if abs(lap - target) < abs(best - target):
            best = lap
    return best


def resolve_time_cursor(
    lap_times: Mapping[int, datetime | None],
    lap_numbers: Iterable[int],
    cursor: TimeCursor | Mapping[str, Any] | None = None,
) -> ResolvedCursor:
    """Map *cursor* onto one of *lap_numbers*.

    - no cursor, ``latest``, a non-finite or non-numeric lap, or an
      unparseable timestamp:
      highest known lap, source ``latest``
    - numeric lap: nearest known lap (ties toward the lower), source ``lap``
    - timestamp: lap whose recorded timestamp is closest, source ``time``;
      ``latest`` when no lap has a timestamp
    - no known laps at all: ``lap=None``, source ``none``
    """
    sorted_laps = sorted(set(lap_numbers))
    if not sorted_laps:
        return ResolvedCursor(lap=None, timestamp=None, source=CursorSource.NONE)

    def resolved(lap: int, source: CursorSource) -> ResolvedCursor:
        return ResolvedCursor(lap=lap, timestamp=lap_times.get(lap), source=source)

    latest = resolved(sorted_laps[-1], CursorSource.LATEST)

    if cursor is None:
        return latest
    if not isinstance(cursor, TimeCursor):
        try:
            cursor = TimeCursor.model_validate(dict(cursor))
        except ValidationError:
            return latest
    if cursor.latest:
        return latest

    if cursor.lap is not None:
        if not math.isfinite(cursor.lap):
            return latest
        return resolved(_nearest_lap(sorted_laps, cursor.lap), CursorSource.LAP)

    if cursor.iso:
        target = _parse_iso(cursor.iso)
        if target is None:
            return latest
        best_lap: int | None = None
        best_diff = math.inf
        for lap in sorted_laps:
            at = lap_times.get(lap)
            if at is None:
                continue
            diff = abs((at - target).total_seconds())
            if diff < best_diff:
                best_diff = diff
                best_lap = lap
        if best_lap is None:
            return latest
        return resolved(best_lap, CursorSource.TIME)

    return latest
