"""Race-engineering metrics over lap records and pit-lane times.

Pure functions; :class:`~pitwall.analysis.index.AnalysisIndex` wires them
to its snapshot of the session.
"""

from __future__ import annotations

import math
import re
import statistics
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Literal

from pitwall.analysis.models import (
    DriverPitLaneTime,
    GapTrain,
    GapTrainCar,
    GapTrainReport,
    LapRecord,
    PhaseLapSample,
    PhasePeriod,
    PhaseStats,
    PitLaneTimeStats,
    SampleExclusion,
    ScVscDeltaReport,
    TrackPhase,
    TrackStatusSnapshot,
)
from pitwall.analysis.parsing import safe_float

NameLookup = Callable[[str], str | None]

_STATUS_PHASES: dict[str, TrackPhase] = {
    "1": TrackPhase.GREEN,
    "green": TrackPhase.GREEN,
    "2": TrackPhase.YELLOW,
    "4": TrackPhase.SC,
    "5": TrackPhase.RED,
    "6": TrackPhase.VSC,
    "7": TrackPhase.VSC,
}
_VSC_WORD_RE = re.compile(r"\bvsc\b")
_SC_WORD_RE = re.compile(r"\bsc\b")
_DECIMAL_RE = re.compile(r"^\d+(?:\.\d+)?$")


def _no_name(driver: str) -> str | None:
    return None


def _median_ms(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(round(statistics.median(values)))


def _mean_ms(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(round(statistics.fmean(values)))


def _driver_sort_key(driver: str) -> tuple[float, str]:
    number = safe_float(driver)
    return (math.inf if number is None else number, driver)


# ------------------------------------------------------------------
# Track phases
# ------------------------------------------------------------------


def classify_track_phase(status: Any, message: Any) -> TrackPhase:
    """Map a TrackStatus ``Status``/``Message`` pair onto a :class:`TrackPhase`.

    The status code wins; the message is only consulted for codes the
    mapping does not know.
    """
    status_text = "" if status is None else str(status).strip().lower()
    message_text = "" if message is None else str(message).strip().lower()

    phase = _STATUS_PHASES.get(status_text)
    if phase is not None:
        return phase
    if "allclear" in message_text or "all clear" in message_text:
        return TrackPhase.GREEN
    if "virtual safety car" in message_text or _VSC_WORD_RE.search(message_text):
        return TrackPhase.VSC
    if "safety car" in message_text or _SC_WORD_RE.search(message_text):
        return TrackPhase.SC
    if "red" in message_text:
        return TrackPhase.RED
    if "yellow" in message_text:
        return TrackPhase.YELLOW
    return TrackPhase.UNKNOWN


def _lap_status(records: Iterable[LapRecord]) -> TrackStatusSnapshot | None:
    return next((record.track_status for record in records if record.track_status is not None), None)


def lap_phase(records: Iterable[LapRecord]) -> TrackPhase:
    """Phase of one lap, from the first of its records that carries a track status."""
    status = _lap_status(records)
    if status is None:
        return TrackPhase.UNKNOWN
    return classify_track_phase(status.status, status.message)


def compute_phase_periods(laps: Iterable[tuple[int, TrackPhase]]) -> list[PhasePeriod]:
    """Collapse ``(lap, phase)`` pairs into runs of consecutive laps.

    A gap in lap numbers ends the current run even when the phase is unchanged.
    """
    periods: list[PhasePeriod] = []
    start = end = None
    current: TrackPhase | None = None
    for lap, phase in sorted(laps, key=lambda item: item[0]):
        if current is not None and phase == current and end is not None and lap == end + 1:
            end = lap
            continue
        if current is not None and start is not None and end is not None:
            periods.append(PhasePeriod(phase=current, start_lap=start, end_lap=end, lap_count=end - start + 1))
        current, start, end = phase, lap, lap
    if current is not None and start is not None and end is not None:
        periods.append(PhasePeriod(phase=current, start_lap=start, end_lap=end, lap_count=end - start + 1))
    return periods


# ------------------------------------------------------------------
# SC / VSC deltas
# ------------------------------------------------------------------


def _phase_stats(values: Sequence[float], baseline_median_ms: float | None) -> PhaseStats:
    if not values:
        return PhaseStats()
    median = _median_ms(values)
    return PhaseStats(
        samples=len(values),
        avg_lap_ms=_mean_ms(values),
        median_lap_ms=median,
        min_lap_ms=min(values),
        max_lap_ms=max(values),
        delta_to_green_ms=None if baseline_median_ms is None or median is None else median - baseline_median_ms,
    )


def _has_pit_flag(record: LapRecord) -> bool:
    return record.pit or record.pit_in or record.pit_out or record.in_pit


def _driver_sample(lap: int, phase: TrackPhase, record: LapRecord | None, include_pit_laps: bool) -> PhaseLapSample:
    if record is None:
        return PhaseLapSample(lap=lap, phase=phase, excluded=SampleExclusion.MISSING_DRIVER)
    if not include_pit_laps and _has_pit_flag(record):
        return PhaseLapSample(lap=lap, phase=phase, sample_count=1, excluded=SampleExclusion.PIT_LAP)
    if record.lap_time_ms is None:
        return PhaseLapSample(lap=lap, phase=phase, sample_count=1, excluded=SampleExclusion.MISSING_LAP_TIME)
    return PhaseLapSample(lap=lap, phase=phase, lap_time_ms=record.lap_time_ms, sample_count=1)


def _field_sample(lap: int, phase: TrackPhase, records: Iterable[LapRecord], include_pit_laps: bool) -> PhaseLapSample:
    values = [
        record.lap_time_ms
        for record in records
        if record.lap_time_ms is not None and (include_pit_laps or not _has_pit_flag(record))
    ]
    if not values:
        return PhaseLapSample(lap=lap, phase=phase, excluded=SampleExclusion.NO_LAP_TIMES)
    return PhaseLapSample(lap=lap, phase=phase, lap_time_ms=_median_ms(values), sample_count=len(values))


def compute_sc_vsc_deltas(
    by_lap: Mapping[int, Mapping[str, LapRecord]],
    start_lap: int,
    end_lap: int,
    *,
    driver: str | None = None,
    include_pit_laps: bool = False,
) -> ScVscDeltaReport:
    """Compare lap times under each track phase against green-flag running.

    With *driver* set, each lap's sample is that driver's lap time;
    otherwise it is the field median. Pit laps are excluded unless
    *include_pit_laps* is set. ``delta_to_green_ms`` is the phase median
    minus the green median.
    """
    driver = str(driver) if driver else None
    samples: list[PhaseLapSample] = []
    phases_by_lap: list[tuple[int, TrackPhase]] = []

    for lap in range(start_lap, end_lap + 1):
        records = by_lap.get(lap)
        if not records:
            samples.append(PhaseLapSample(lap=lap, phase=TrackPhase.UNKNOWN, excluded=SampleExclusion.MISSING_LAP))
            phases_by_lap.append((lap, TrackPhase.UNKNOWN))
            continue
        phase = lap_phase(records.values())
        phases_by_lap.append((lap, phase))
        if driver is not None:
            samples.append(_driver_sample(lap, phase, records.get(driver), include_pit_laps))
        else:
            samples.append(_field_sample(lap, phase, records.values(), include_pit_laps))

    def usable(phase: TrackPhase) -> list[float]:
        return [
            sample.lap_time_ms
            for sample in samples
            if sample.excluded is None and sample.phase == phase and sample.lap_time_ms is not None
        ]

    green = usable(TrackPhase.GREEN)
    baseline_median = _median_ms(green)
    return ScVscDeltaReport(
        driver=driver,
        start_lap=start_lap,
        end_lap=end_lap,
        include_pit_laps=include_pit_laps,
        baseline=None if baseline_median is None else _phase_stats(green, baseline_median),
        phases={phase: _phase_stats(usable(phase), baseline_median) for phase in TrackPhase},
        periods=tuple(compute_phase_periods(phases_by_lap)),
        laps=tuple(samples),
    )


# ------------------------------------------------------------------
# Gap trains
# ------------------------------------------------------------------


def _train(records: Sequence[LapRecord], name_for: NameLookup) -> GapTrain:
    cars = tuple(
        GapTrainCar(
            driver=record.driver,
            name=name_for(record.driver),
            position=record.position,
            gap_to_leader_sec=record.gap_to_leader_sec,
            interval_to_ahead_sec=record.interval_to_ahead_sec,
        )
        for record in records
    )
    # The head car's interval is to a car outside the train.
    intervals = [car.interval_to_ahead_sec for car in cars[1:] if car.interval_to_ahead_sec is not None]
    return GapTrain(size=len(cars), max_interval_to_ahead_sec=max(intervals) if intervals else None, cars=cars)


def compute_gap_trains(
    lap: int,
    records: Mapping[str, LapRecord],
    *,
    threshold_sec: float = 1.0,
    min_cars: int = 3,
    require_green: bool = False,
    name_for: NameLookup | None = None,
) -> GapTrainReport:
    """Find DRS-style trains: runs of cars each within *threshold_sec* of the car ahead.

    The car heading a train is included even though its own interval is
    larger. Runs shorter than *min_cars* are dropped. With *require_green*,
    a lap under a non-green status is skipped.
    """
    name_for = name_for or _no_name
    status = _lap_status(records.values())
    phase = TrackPhase.UNKNOWN if status is None else classify_track_phase(status.status, status.message)
    report = {
        "lap": lap,
        "threshold_sec": threshold_sec,
        "min_cars": min_cars,
        "require_green": require_green,
        "phase": phase,
    }
    if require_green and status is not None and not status.is_green:
        return GapTrainReport(**report, skipped_reason="non-green")

    ordered = sorted(
        (record for record in records.values() if record.position is not None),
        key=lambda record: record.position or 0,
    )
    trains: list[GapTrain] = []
    current: list[LapRecord] = []
    for previous, record in zip(ordered, ordered[1:]):
        interval = record.interval_to_ahead_sec
        if interval is not None and interval <= threshold_sec:
            if not current:
                current.append(previous)
            current.append(record)
            continue
        if len(current) >= min_cars:
            trains.append(_train(current, name_for))
        current = []
    if len(current) >= min_cars:
        trains.append(_train(current, name_for))
    return GapTrainReport(**report, trains=tuple(trains))


# ------------------------------------------------------------------
# Pit-lane time
# ------------------------------------------------------------------


def parse_duration_ms(value: Any) -> float | None:
    """Parse a pit-lane ``Duration`` (``"22.5"``, ``"1:02.3"``, ``"1:00:02.3"``, or seconds) into ms."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(round(value * 1000)) if math.isfinite(value) else None
    text = str(value).strip().removeprefix("+")
    if not text:
        return None
    if _DECIMAL_RE.match(text):
        return float(round(float(text) * 1000))
    parts = [part.strip() for part in text.split(":")]
    if len(parts) not in (2, 3) or not all(parts):
        return None
    numbers = [safe_float(part) for part in parts]
    if any(number is None for number in numbers):
        return None
    seconds = 0.0
    for number in numbers:
        seconds = seconds * 60 + (number or 0.0)
    return float(round(seconds * 1000))


def _pit_lap(pit: Any) -> float | None:
    if not isinstance(pit, Mapping):
        return None
    return safe_float(pit.get("Lap"))


def compute_pit_lane_time_stats(
    pit_times: Mapping[str, Sequence[Any]],
    *,
    method: Literal["median", "mean"] = "median",
    driver: str | None = None,
    start_lap: int | None = None,
    end_lap: int | None = None,
    name_for: NameLookup | None = None,
) -> PitLaneTimeStats:
    """Aggregate pit-lane durations per driver and over the field.

    *pit_times* maps a driver to its pit history as kept by the
    ``PitLaneTimeCollection`` processor. Stops whose ``Lap`` falls outside
    ``[start_lap, end_lap]`` are skipped; stops without a lap are kept.
    """
    name_for = name_for or _no_name
    aggregate = _mean_ms if method == "mean" else _median_ms
    driver = str(driver) if driver else None

    by_driver: list[DriverPitLaneTime] = []
    durations: list[float] = []
    for number in sorted(pit_times, key=_driver_sort_key):
        if driver is not None and number != driver:
            continue
        driver_durations: list[float] = []
        for pit in pit_times[number]:
            lap = _pit_lap(pit)
            if lap is not None and start_lap is not None and lap < start_lap:
                continue
            if lap is not None and end_lap is not None and lap > end_lap:
                continue
            duration = parse_duration_ms(pit.get("Duration")) if isinstance(pit, Mapping) else None
            if duration is not None:
                driver_durations.append(duration)
        durations.extend(driver_durations)
        by_driver.append(
            DriverPitLaneTime(
                driver=number,
                name=name_for(number),
                samples=len(driver_durations),
                pit_lane_time_ms=aggregate(driver_durations),
            )
        )

    return PitLaneTimeStats(
        method=method,
        driver=driver,
        start_lap=start_lap,
        end_lap=end_lap,
        samples=len(durations),
        pit_lane_time_ms=aggregate(durations),
        by_driver=tuple(by_driver),
    )
