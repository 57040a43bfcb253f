"""Result models for the analysis index.

All models are frozen; numeric fields are ``None`` whenever the source
value was absent or did not parse.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pitwall.analysis.traffic import TrafficLabel


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TrackStatusSnapshot(_Frozen):
    status: str | None = None
    message: str | None = None
    is_green: bool = True


class StintInfo(_Frozen):
    compound: str | None = None
    tyre_age: int | None = None
    stint: int | None = None


class LapRecord(_Frozen):
    """One driver's derived state at one lap number.

    Parameters
    ----------
    driver : str
        Racing number as used by the feed.
    lap : int
        Lap number (``NumberOfLaps``) the snapshot was taken at.
    lap_time_ms : float or None
        Lap time in milliseconds.
    gap_to_leader_sec : float or None
        Cumulative gap to the race leader.
    interval_to_ahead_sec : float or None
        Interval to the car one position ahead.
    traffic : TrafficLabel
        Traffic classification for the lap.
    pit : bool
        Any pit flag (``PitIn``, ``PitOut``, ``InPit``, ``IsPitLap``) set.
    position : int or None
        Classified position.
    timestamp : datetime or None
        Capture time of the snapshot.
    """

    driver: str
    lap: int
    lap_time_ms: float | None = None
    gap_to_leader_sec: float | None = None
    interval_to_ahead_sec: float | None = None
    traffic: TrafficLabel = TrafficLabel.UNKNOWN
    pit: bool = False
    pit_in: bool = False
    pit_out: bool = False
    in_pit: bool = False
    position: int | None = None
    timestamp: datetime | None = None
    track_status: TrackStatusSnapshot | None = None
    stint: StintInfo | None = None


class PitEventKind(StrEnum):
    PIT_IN = "pit-in"
    PIT_OUT = "pit-out"
    PIT = "pit"


class PitEvent(_Frozen):
    driver: str
    lap: int
    kind: PitEventKind


class PositionChange(_Frozen):
    driver: str
    from_lap: int
    to_lap: int
    from_position: int | None
    to_position: int | None


class StintPace(_Frozen):
    driver: str
    samples: int
    avg_lap_ms: float | None = None
    slope_ms_per_lap: float | None = Field(default=None, description="Least-squares lap-time trend")
    laps: tuple[int, ...] = ()


class LapDelta(_Frozen):
    lap: int
    delta_ms: float


class ComparisonSummary(_Frozen):
    avg_delta_ms: float = Field(..., description="Mean of A minus B; negative means A is faster")


class DriverComparison(_Frozen):
    driver_a: str
    driver_b: str
    laps: tuple[LapDelta, ...] = ()
    summary: ComparisonSummary | None = None


class UndercutWindow(_Frozen):
    avg_delta_ms: float | None
    laps_to_cover: float | None
    pit_loss_ms: float | None


class RejoinProjection(_Frozen):
    driver: str
    as_of_lap: int | None
    loss_ms: float
    projected_gap_to_leader_sec: float | None


class TrackPhase(StrEnum):
    GREEN = "green"
    YELLOW = "yellow"
    SC = "sc"
    VSC = "vsc"
    RED = "red"
    UNKNOWN = "unknown"


class PhasePeriod(_Frozen):
    """A run of consecutive laps under the same track phase."""

    phase: TrackPhase
    start_lap: int
    end_lap: int
    lap_count: int


class SampleExclusion(StrEnum):
    MISSING_LAP = "missing-lap"
    MISSING_DRIVER = "missing-driver"
    PIT_LAP = "pit-lap"
    MISSING_LAP_TIME = "missing-lap-time"
    NO_LAP_TIMES = "no-lap-times"


class PhaseLapSample(_Frozen):
    lap: int
    phase: TrackPhase
    lap_time_ms: float | None = None
    sample_count: int = 0
    excluded: SampleExclusion | None = None


class PhaseStats(_Frozen):
    samples: int = 0
    avg_lap_ms: float | None = None
    median_lap_ms: float | None = None
    min_lap_ms: float | None = None
    max_lap_ms: float | None = None
    delta_to_green_ms: float | None = Field(default=None, description="Median minus the green-flag median")


class ScVscDeltaReport(_Frozen):
    """Lap-time cost of neutralised phases relative to green-flag running.

    ``driver`` is ``None`` for the field-median method, where each lap's
    sample is the median over every car with a usable lap time.
    """

    driver: str | None
    start_lap: int
    end_lap: int
    include_pit_laps: bool
    baseline: PhaseStats | None
    phases: dict[TrackPhase, PhaseStats]
    periods: tuple[PhasePeriod, ...] = ()
    laps: tuple[PhaseLapSample, ...] = ()


class GapTrainCar(_Frozen):
    driver: str
    name: str | None = None
    position: int | None = None
    gap_to_leader_sec: float | None = None
    interval_to_ahead_sec: float | None = None


class GapTrain(_Frozen):
    size: int
    max_interval_to_ahead_sec: float | None
    cars: tuple[GapTrainCar, ...]


class GapTrainReport(_Frozen):
    lap: int
    threshold_sec: float
    min_cars: int
    require_green: bool
    phase: TrackPhase = TrackPhase.UNKNOWN
    trains: tuple[GapTrain, ...] = ()
    skipped_reason: str | None = None


class DriverPitLaneTime(_Frozen):
    driver: str
    name: str | None = None
    samples: int
    pit_lane_time_ms: float | None = None


class PitLaneTimeStats(_Frozen):
    """Aggregated ``PitLaneTimeCollection`` durations.

    The duration covers the pit-lane traversal only, not the full pit loss
    including in- and out-lap time.
    """

    method: Literal["median", "mean"]
    driver: str | None = None
    start_lap: int | None = None
    end_lap: int | None = None
    samples: int = 0
    pit_lane_time_ms: float | None = None
    by_driver: tuple[DriverPitLaneTime, ...] = ()
