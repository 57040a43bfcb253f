"""Analysis index: per-driver lap records and race-engineering queries.

The index is a snapshot. It is built from the processors' state at one
moment and never sees later events; build a new one to include them.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from pitwall.analysis.cursor import ResolvedCursor, TimeCursor, resolve_time_cursor
from pitwall.analysis.metrics import (
    compute_gap_trains,
    compute_phase_periods,
    compute_pit_lane_time_stats,
    compute_sc_vsc_deltas,
    lap_phase,
)
from pitwall.analysis.models import (
    ComparisonSummary,
    DriverComparison,
    GapTrainReport,
    LapDelta,
    LapRecord,
    PhasePeriod,
    PitEvent,
    PitEventKind,
    PitLaneTimeStats,
    PositionChange,
    RejoinProjection,
    ScVscDeltaReport,
    StintInfo,
    StintPace,
    TrackStatusSnapshot,
    UndercutWindow,
)
from pitwall.analysis.parsing import (
    extract_lap_time_ms,
    gap_to_leader_seconds,
    interval_to_ahead_seconds,
    is_pit_lap,
    ordered_lines,
    parse_gap_seconds,
    parse_position,
    safe_int,
    stint_for_lap,
    track_status_is_green,
)
from pitwall.analysis.traffic import DEFAULT_TRAFFIC_THRESHOLDS, TrafficThresholds, classify_traffic
from pitwall.state.processors import LapSnapshot, TimingDataProcessor, TrackStatusProcessor

if TYPE_CHECKING:
    from pitwall.state.store import ProcessorSet

_logger = logging.getLogger(__name__)


def _track_snapshot(track: Mapping[str, Any] | None) -> TrackStatusSnapshot | None:
    if track is None:
        return None
    status = track.get("Status")
    message = track.get("Message")
    return TrackStatusSnapshot(
        status=None if status is None else str(status),
        message=None if message is None else str(message),
        is_green=track_status_is_green(status, message),
    )


def _stint_info(stint: Mapping[str, Any] | None) -> StintInfo | None:
    if stint is None:
        return None
    compound = stint.get("Compound")
    return StintInfo(
        compound=str(compound) if compound else None,
        tyre_age=safe_int(stint.get("TyreAge", stint.get("TotalLaps"))),
        stint=safe_int(stint.get("Stint")),
    )


def _position(line: Mapping[str, Any]) -> int | None:
    value = line.get("Position")
    if value is None or value == "":
        value = line.get("Line")
    return parse_position(value)


def _lap_records(
    lap: int,
    snapshots: Mapping[str, LapSnapshot],
    *,
    track_status: TrackStatusProcessor | None,
    timing_app_state: Any,
    thresholds: TrafficThresholds,
) -> list[LapRecord]:
    lines = {number: snapshot.line for number, snapshot in snapshots.items()}
    ordered = ordered_lines(lines)

    gap_ahead: dict[str, float | None] = {}
    gap_behind: dict[str, float | None] = {}
    for i, (number, line) in enumerate(ordered):
        ahead = interval_to_ahead_seconds(line)
        if ahead is None and i == 0:
            ahead = parse_gap_seconds(line.get("GapToLeader"))
        gap_ahead[number] = ahead
        gap_behind[number] = interval_to_ahead_seconds(ordered[i + 1][1]) if i + 1 < len(ordered) else None

    records: list[LapRecord] = []
    for number, snapshot in snapshots.items():
        line = snapshot.line
        track: Mapping[str, Any] | None = None
        if track_status is not None:
            track = track_status.state_at(snapshot.timestamp)
        track_info = _track_snapshot(track)
        is_green = track_info.is_green if track_info is not None else True

        lap_time_ms = extract_lap_time_ms(line, prefer_previous=True)
        records.append(
            LapRecord(
                driver=number,
                lap=lap,
                lap_time_ms=lap_time_ms,
                gap_to_leader_sec=gap_to_leader_seconds(lines, number),
                interval_to_ahead_sec=interval_to_ahead_seconds(line),
                traffic=classify_traffic(
                    gap_ahead.get(number),
                    gap_behind.get(number),
                    lap_time_ms,
                    is_green,
                    thresholds,
                ),
                pit=is_pit_lap(line),
                pit_in=bool(line.get("PitIn")),
                pit_out=bool(line.get("PitOut")),
                in_pit=bool(line.get("InPit")),
                position=_position(line),
                timestamp=snapshot.timestamp,
                track_status=track_info,
                stint=_stint_info(stint_for_lap(timing_app_state, number, lap)),
            )
        )
    return records


class AnalysisIndex:
    """Read-only lap records plus derived queries.

    Usage::

        index = AnalysisIndex.build(service.processors)
        index.get_stint_pace("44").slope_ms_per_lap
    """

    def __init__(
        self,
        records: list[LapRecord],
        *,
        lap_times: Mapping[int, datetime | None] | None = None,
        driver_names: Mapping[str, str | None] | None = None,
        best_laps: Mapping[str, float] | None = None,
        pit_lane_times: Mapping[str, list[Any]] | None = None,
    ) -> None:
        by_driver: dict[str, dict[int, LapRecord]] = {}
        by_lap: dict[int, dict[str, LapRecord]] = {}
        for record in records:
            # Last write for a (driver, lap) wins.
            by_driver.setdefault(record.driver, {})[record.lap] = record
            by_lap.setdefault(record.lap, {})[record.driver] = record

        self._by_driver: dict[str, tuple[LapRecord, ...]] = {
            driver: tuple(laps[lap] for lap in sorted(laps)) for driver, laps in by_driver.items()
        }
        self._by_lap = by_lap
        self._lap_numbers: tuple[int, ...] = tuple(sorted(by_lap))
        self._lap_times: dict[int, datetime | None] = dict(lap_times or {})
        self._driver_names: dict[str, str | None] = dict(driver_names or {})
        self._best_laps: dict[str, float] = dict(best_laps or {})
        self._pit_lane_times: dict[str, list[Any]] = {
            driver: list(pits) for driver, pits in (pit_lane_times or {}).items()
        }
        self._pit_events = self._derive_pit_events()
        self._position_changes = self._derive_position_changes()

    @classmethod
    def build(
        cls,
        processors: ProcessorSet,
        *,
        thresholds: TrafficThresholds | None = None,
    ) -> AnalysisIndex:
        """Build an index from the current state of *processors*."""
        timing: TimingDataProcessor = processors.timing_data
        thresholds = thresholds or DEFAULT_TRAFFIC_THRESHOLDS

        records: list[LapRecord] = []
        for lap in timing.lap_numbers():
            records.extend(
                _lap_records(
                    lap,
                    timing.drivers_by_lap.get(lap, {}),
                    track_status=processors.track_status,
                    timing_app_state=processors.timing_app_data.latest,
                    thresholds=thresholds,
                )
            )

        lap_times: dict[int, datetime | None] = {lap: timing.lap_started_at.get(lap) for lap in timing.lap_numbers()}
        roster = processors.driver_list
        pit_lane = processors.pit_lane_time_collection
        _logger.debug("Built analysis index: %d records over %d laps", len(records), len(lap_times))
        return cls(
            records,
            lap_times=lap_times,
            driver_names={number: roster.name_for(number) for number in roster.driver_numbers()},
            best_laps={number: best.time_ms for number, best in timing.best_laps.items()},
            pit_lane_times={driver: pit_lane.history_for(driver) for driver in pit_lane.drivers()},
        )

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    @property
    def lap_numbers(self) -> tuple[int, ...]:
        return self._lap_numbers

    @property
    def drivers(self) -> tuple[str, ...]:
        return tuple(self._by_driver)

    def records_for(self, driver: str) -> tuple[LapRecord, ...]:
        return self._by_driver.get(str(driver), ())

    def record_at(self, driver: str, lap: int) -> LapRecord | None:
        return self._by_lap.get(lap, {}).get(str(driver))

    def name_for(self, driver: str) -> str | None:
        return self._driver_names.get(str(driver))

    def best_lap_ms(self, driver: str) -> float | None:
        """Personal best lap as reported by the timing feed."""
        return self._best_laps.get(str(driver))

    def _timed_laps(self, driver: str, start_lap: int | None = None, end_lap: int | None = None) -> list[LapRecord]:
        return [
            record
            for record in self.records_for(driver)
            if record.lap_time_ms is not None
            and (start_lap is None or record.lap >= start_lap)
            and (end_lap is None or record.lap <= end_lap)
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_as_of(self, cursor: TimeCursor | Mapping[str, Any] | None = None) -> ResolvedCursor:
        return resolve_time_cursor(self._lap_times, self._lap_numbers, cursor)

    def _derive_pit_events(self) -> tuple[PitEvent, ...]:
        events: list[PitEvent] = []
        for driver, records in self._by_driver.items():
            for record in records:
                if not record.pit:
                    continue
                if record.pit_in:
                    kind = PitEventKind.PIT_IN
                elif record.pit_out:
                    kind = PitEventKind.PIT_OUT
                else:
                    kind = PitEventKind.PIT
                events.append(PitEvent(driver=driver, lap=record.lap, kind=kind))
        return tuple(events)

    def _derive_position_changes(self) -> tuple[PositionChange, ...]:
        changes: list[PositionChange] = []
        for driver, records in self._by_driver.items():
            for previous, current in zip(records, records[1:]):
                if previous.position != current.position:
                    changes.append(
                        PositionChange(
                            driver=driver,
                            from_lap=previous.lap,
                            to_lap=current.lap,
                            from_position=previous.position,
                            to_position=current.position,
                        )
                    )
        return tuple(changes)

    def get_pit_events(self) -> list[PitEvent]:
        return list(self._pit_events)

    def get_position_changes(self) -> list[PositionChange]:
        return list(self._position_changes)

    def get_stint_pace(self, driver: str, *, start_lap: int | None = None, end_lap: int | None = None) -> StintPace:
        """Average lap time and least-squares lap-time trend (ms per lap)."""
        records = self._timed_laps(driver, start_lap, end_lap)
        laps = [record.lap for record in records]
        times = [record.lap_time_ms for record in records if record.lap_time_ms is not None]
        if not records:
            return StintPace(driver=str(driver), samples=0)
        slope: float | None = None
        if len(records) >= 2:
            slope = statistics.linear_regression(laps, times).slope
        return StintPace(
            driver=str(driver),
            samples=len(records),
            avg_lap_ms=statistics.fmean(times),
            slope_ms_per_lap=slope,
            laps=tuple(laps),
        )

    def compare_drivers(
        self,
        driver_a: str,
        driver_b: str,
        *,
        start_lap: int | None = None,
        end_lap: int | None = None,
    ) -> DriverComparison:
        """Per-lap ``A - B`` lap-time deltas over laps both drivers have timed."""
        times_a = {r.lap: r.lap_time_ms for r in self._timed_laps(driver_a, start_lap, end_lap)}
        times_b = {r.lap: r.lap_time_ms for r in self._timed_laps(driver_b, start_lap, end_lap)}
        deltas: list[LapDelta] = []
        for lap in sorted(times_a.keys() & times_b.keys()):
            time_a, time_b = times_a[lap], times_b[lap]
            if time_a is None or time_b is None:
                continue
            deltas.append(LapDelta(lap=lap, delta_ms=time_a - time_b))
        summary = None
        if deltas:
            summary = ComparisonSummary(avg_delta_ms=statistics.fmean(d.delta_ms for d in deltas))
        return DriverComparison(driver_a=str(driver_a), driver_b=str(driver_b), laps=tuple(deltas), summary=summary)

    def get_undercut_window(self, driver_a: str, driver_b: str, pit_loss_ms: float | None) -> UndercutWindow:
        """Laps of A's pace advantage over B needed to recoup *pit_loss_ms*.

        ``laps_to_cover`` is ``None`` unless A is faster on average.
        """
        summary = self.compare_drivers(driver_a, driver_b).summary
        avg_delta = summary.avg_delta_ms if summary is not None else None
        laps_to_cover: float | None = None
        if avg_delta is not None and avg_delta < 0 and pit_loss_ms is not None:
            laps_to_cover = pit_loss_ms / abs(avg_delta)
        return UndercutWindow(avg_delta_ms=avg_delta, laps_to_cover=laps_to_cover, pit_loss_ms=pit_loss_ms)

    def simulate_rejoin(self, driver: str, pit_loss_ms: float, as_of_lap: int | None = None) -> RejoinProjection:
        """Gap to the leader after a stop costing *pit_loss_ms*, at *as_of_lap*.

        Laps that are not known exactly resolve to the nearest known lap.
        """
        lap: int | None = as_of_lap
        if lap is None or lap not in self._by_lap:
            lap = self.resolve_as_of(TimeCursor(lap=as_of_lap) if as_of_lap is not None else None).lap
        record = self.record_at(driver, lap) if lap is not None else None
        gap = record.gap_to_leader_sec if record is not None else None
        return RejoinProjection(
            driver=str(driver),
            as_of_lap=lap,
            loss_ms=pit_loss_ms,
            projected_gap_to_leader_sec=None if gap is None else gap + pit_loss_ms / 1000,
        )

    # ------------------------------------------------------------------
    # Race-engineering metrics
    # ------------------------------------------------------------------

    def get_track_phases(self) -> list[PhasePeriod]:
        """Runs of consecutive laps under the same track phase."""
        return compute_phase_periods((lap, lap_phase(self._by_lap[lap].values())) for lap in self._lap_numbers)

    def get_sc_vsc_deltas(
        self,
        *,
        driver: str | None = None,
        start_lap: int | None = None,
        end_lap: int | None = None,
        include_pit_laps: bool = False,
    ) -> ScVscDeltaReport:
        """Lap-time cost of each track phase relative to green running.

        The lap range defaults to every known lap.
        """
        first = self._lap_numbers[0] if self._lap_numbers else 0
        last = self._lap_numbers[-1] if self._lap_numbers else -1
        return compute_sc_vsc_deltas(
            self._by_lap,
            first if start_lap is None else start_lap,
            last if end_lap is None else end_lap,
            driver=driver,
            include_pit_laps=include_pit_laps,
        )

    def get_gap_trains(
        self,
        lap: int | None = None,
        *,
        threshold_sec: float = 1.0,
        min_cars: int = 3,
        require_green: bool = False,
    ) -> GapTrainReport | None:
        """Trains of cars running within *threshold_sec* of each other on *lap*.

        *lap* resolves like ``as_of_lap`` in :meth:`simulate_rejoin`; ``None``
        is returned when the index has no laps.
        """
        if min_cars < 2:
            raise ValueError("min_cars must be at least 2")
        if lap is None or lap not in self._by_lap:
            lap = self.resolve_as_of(TimeCursor(lap=lap) if lap is not None else None).lap
        if lap is None:
            return None
        return compute_gap_trains(
            lap,
            self._by_lap.get(lap, {}),
            threshold_sec=threshold_sec,
            min_cars=min_cars,
            require_green=require_green,
            name_for=self.name_for,
        )

    def get_pit_lane_time_stats(
        self,
        *,
        method: Literal["median", "mean"] = "median",
        driver: str | None = None,
        start_lap: int | None = None,
        end_lap: int | None = None,
    ) -> PitLaneTimeStats:
        """Pit-lane traversal time per driver and over the field.

        The aggregate is a reasonable ``pit_loss_ms`` for
        :meth:`get_undercut_window` and :meth:`simulate_rejoin`, though it
        excludes the slow in- and out-laps.
        """
        return compute_pit_lane_time_stats(
            self._pit_lane_times,
            method=method,
            driver=driver,
            start_lap=start_lap,
            end_lap=end_lap,
            name_for=self.name_for,
        )
