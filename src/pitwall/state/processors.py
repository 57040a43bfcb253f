"""Per-topic state processors.

Each processor consumes :class:`~pitwall.state.events.NormalizedEvent`
instances of its own topic, ignores every other topic, and keeps the
cumulative state in ``latest``. Odd payload shapes are treated as partial
data: a processor merges what it can and never raises on shape.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Protocol

from pitwall.analysis.parsing import parse_lap_time_ms
from pitwall.state.events import NormalizedEvent
from pitwall.state.merge import is_mapping, merged

PIT_DELETED_SENTINEL = "_deleted"


class Processor(Protocol):
    topic: str

    @property
    def latest(self) -> Any: ...

    def process(self, event: NormalizedEvent) -> None: ...


class MergeProcessor:
    """Generic processor for patch-style topics.

    The first event's payload is adopted as state; every later payload is
    deep-merged into it (mappings recurse, lists are replaced wholesale).
    """

    def __init__(self, topic: str) -> None:
        self.topic = topic
        self._state: Any = None

    @property
    def latest(self) -> Any:
        return self._state

    def process(self, event: NormalizedEvent) -> None:
        if event.topic != self.topic:
            return
        patch = event.payload if event.payload is not None else {}
        self._state = merged(self._state, patch)
        self._after_merge(event, patch)

    def _after_merge(self, event: NormalizedEvent, patch: Any) -> None:
        """Hook for subclasses that derive extra state from each patch."""


class DriverListProcessor(MergeProcessor):
    """Driver roster keyed by racing number."""

    TOPIC: ClassVar[str] = "DriverList"

    def __init__(self) -> None:
        super().__init__(self.TOPIC)

    def name_for(self, driver: str) -> str | None:
        """Full name, then broadcast name, then three-letter code."""
        if not isinstance(self._state, Mapping):
            return None
        entry = self._state.get(str(driver))
        if not isinstance(entry, Mapping):
            return None
        for key in ("FullName", "BroadcastName", "Tla"):
            value = entry.get(key)
            if value is not None:
                return str(value)
        return None

    def driver_numbers(self) -> list[str]:
        if not isinstance(self._state, Mapping):
            return []
        return [number for number, entry in self._state.items() if isinstance(entry, Mapping)]


@dataclass(slots=True)
class TrackStatusEntry:
    at: datetime
    value: dict[str, Any]
    status: str | None
    message: str | None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class TrackStatusProcessor(MergeProcessor):
    """Track status with a history of distinct status/message transitions."""

    TOPIC: ClassVar[str] = "TrackStatus"

    def __init__(self) -> None:
        super().__init__(self.TOPIC)
        self.history: list[TrackStatusEntry] = []

    def _after_merge(self, event: NormalizedEvent, patch: Any) -> None:
        state = self._state if isinstance(self._state, Mapping) else {}
        status = _optional_str(state.get("Status"))
        message = _optional_str(state.get("Message"))
        last = self.history[-1] if self.history else None
        if last is None or last.status != status or last.message != message:
            self.history.append(
                TrackStatusEntry(
                    at=event.timestamp,
                    value=copy.deepcopy(dict(state)),
                    status=status,
                    message=message,
                )
            )

    def state_at(self, when: datetime) -> dict[str, Any] | None:
        """Status in force at *when*, or ``None`` if no status precedes it."""
        for entry in reversed(self.history):
            if entry.at <= when:
                return entry.value
        return None


class PositionProcessor:
    """Single continuously-overlaid snapshot of car positions."""

    topic: str = "Position"

    def __init__(self) -> None:
        self._state: dict[str, list[dict[str, Any]]] | None = None

    @property
    def latest(self) -> dict[str, list[dict[str, Any]]] | None:
        return self._state

    @property
    def current(self) -> dict[str, Any] | None:
        if self._state is None:
            return None
        return self._state["Position"][-1]

    def process(self, event: NormalizedEvent) -> None:
        if event.topic != self.topic:
            return
        payload = event.payload if is_mapping(event.payload) else {}
        updates = payload.get("Position")
        if self._state is None:
            self._state = {"Position": [{"Entries": {}}]}
        current = self._state["Position"][-1]
        if not isinstance(updates, list):
            return
        for update in updates:
            if not is_mapping(update):
                continue
            entries = update.get("Entries")
            if is_mapping(entries):
                current["Entries"] = {**current.get("Entries", {}), **copy.deepcopy(dict(entries))}
            if update.get("Timestamp"):
                current["Timestamp"] = update["Timestamp"]


class CarDataProcessor:
    """Keeps only the most recent batch of car telemetry channels."""

    topic: str = "CarData"

    def __init__(self) -> None:
        self._state: dict[str, list[Any]] | None = None

    @property
    def latest(self) -> dict[str, list[Any]] | None:
        return self._state

    def process(self, event: NormalizedEvent) -> None:
        if event.topic != self.topic:
            return
        payload = event.payload if is_mapping(event.payload) else {}
        entries = payload.get("Entries")
        if self._state is None:
            self._state = {"Entries": []}
        if isinstance(entries, list) and entries:
            self._state["Entries"] = [copy.deepcopy(entries[-1])]


class PitLaneTimeCollectionProcessor:
    """Latest pit-lane time per driver plus the full per-driver history."""

    topic: str = "PitLaneTimeCollection"

    def __init__(self) -> None:
        self._state: dict[str, dict[str, Any]] | None = None

    @property
    def latest(self) -> dict[str, dict[str, Any]] | None:
        return self._state

    def drivers(self) -> list[str]:
        if self._state is None:
            return []
        return list(self._state["PitTimesList"])

    def history_for(self, driver: str) -> list[Any]:
        if self._state is None:
            return []
        return list(self._state["PitTimesList"].get(str(driver), []))

    def process(self, event: NormalizedEvent) -> None:
        if event.topic != self.topic:
            return
        payload = event.payload if is_mapping(event.payload) else {}
        pit_times = payload.get("PitTimes")
        if self._state is None:
            self._state = {"PitTimes": {}, "PitTimesList": {}}
        if not is_mapping(pit_times):
            return
        for driver, pit in pit_times.items():
            if driver == PIT_DELETED_SENTINEL:
                continue
            self._state["PitTimesList"].setdefault(driver, []).append(copy.deepcopy(pit))
            self._state["PitTimes"][driver] = copy.deepcopy(pit)


@dataclass(frozen=True, slots=True)
class LapSnapshot:
    """A timing line as it stood when a lap number was reported."""

    line: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class BestLap:
    time: str
    time_ms: float


def _lap_number(value: Any) -> int | None:
    """Integral lap count from an int, an integral float or a digit string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        return int(value) if value.isascii() and value.isdigit() else None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


class TimingDataProcessor(MergeProcessor):
    """Timing table processor.

    Besides the merged ``Lines`` table, keeps a per-lap trail: whenever a
    patch reports ``NumberOfLaps`` for a car, the car's merged line is
    snapshotted under that lap. A later report of the same lap for the same
    car replaces the earlier snapshot.
    """

    TOPIC: ClassVar[str] = "TimingData"

    def __init__(self) -> None:
        super().__init__(self.TOPIC)
        self.best_laps: dict[str, BestLap] = {}
        self.drivers_by_lap: dict[int, dict[str, LapSnapshot]] = {}
        self.lap_started_at: dict[int, datetime] = {}

    def _after_merge(self, event: NormalizedEvent, patch: Any) -> None:
        if not isinstance(self._state, dict) or not is_mapping(patch):
            return
        patch_lines = patch.get("Lines")
        merged_lines = self._state.get("Lines")
        if not is_mapping(patch_lines) or not isinstance(merged_lines, dict):
            return
        session_part = self._state.get("SessionPart")
        for number, partial in patch_lines.items():
            line = merged_lines.get(number)
            if not isinstance(line, dict):
                continue
            partial = partial if is_mapping(partial) else {}

            if session_part and line.get("SessionPart") != session_part:
                line["SessionPart"] = session_part
            if partial.get("PitOut") or partial.get("InPit"):
                line["IsPitLap"] = True
            elif line.get("IsPitLap") and not line.get("PitOut") and not line.get("InPit"):
                line["IsPitLap"] = False

            lap = _lap_number(partial.get("NumberOfLaps"))
            if lap is not None:
                self.drivers_by_lap.setdefault(lap, {})[number] = LapSnapshot(
                    line=copy.deepcopy(line),
                    timestamp=event.timestamp,
                )
                self.lap_started_at.setdefault(lap, event.timestamp)

            self._track_best_lap(number, line)

    def _track_best_lap(self, number: str, line: dict[str, Any]) -> None:
        best = line.get("BestLapTime")
        time = best.get("Value") if is_mapping(best) else None
        if not time:
            return
        time_ms = parse_lap_time_ms(time)
        if time_ms is None:
            return
        current = self.best_laps.get(number)
        if current is None or time_ms < current.time_ms:
            self.best_laps[number] = BestLap(time=time, time_ms=time_ms)

    def lap_numbers(self) -> list[int]:
        return sorted(self.drivers_by_lap)
