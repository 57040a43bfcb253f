"""Ingestion service: owns every processor and fans events out to them.

This is the only component that mutates processor state. It is meant to be
driven by a single writer; build an :class:`~pitwall.analysis.index.AnalysisIndex`
to read derived analytics.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Iterator
from typing import Any

from pitwall.analysis.index import AnalysisIndex
from pitwall.config import PitwallConfig
from pitwall.exceptions import MalformedEventError
from pitwall.ingestion.normalize import normalize_raw
from pitwall.state.events import NormalizedEvent, RawEvent
from pitwall.state.processors import (
    CarDataProcessor,
    DriverListProcessor,
    MergeProcessor,
    PitLaneTimeCollectionProcessor,
    PositionProcessor,
    Processor,
    TimingDataProcessor,
    TrackStatusProcessor,
)
from pitwall.topics import canonical_topic, topics_for_session_kind

_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ProcessorSet:
    """One processor instance per canonical topic, owned by a single session."""

    heartbeat: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("Heartbeat"))
    driver_list: DriverListProcessor = dataclasses.field(default_factory=DriverListProcessor)
    timing_data: TimingDataProcessor = dataclasses.field(default_factory=TimingDataProcessor)
    timing_app_data: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("TimingAppData"))
    timing_stats: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("TimingStats"))
    track_status: TrackStatusProcessor = dataclasses.field(default_factory=TrackStatusProcessor)
    lap_count: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("LapCount"))
    weather_data: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("WeatherData"))
    session_info: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("SessionInfo"))
    session_data: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("SessionData"))
    extrapolated_clock: MergeProcessor = dataclasses.field(
        default_factory=lambda: MergeProcessor("ExtrapolatedClock")
    )
    top_three: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("TopThree"))
    race_control_messages: MergeProcessor = dataclasses.field(
        default_factory=lambda: MergeProcessor("RaceControlMessages")
    )
    team_radio: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("TeamRadio"))
    championship_prediction: MergeProcessor = dataclasses.field(
        default_factory=lambda: MergeProcessor("ChampionshipPrediction")
    )
    pit_stop_series: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("PitStopSeries"))
    pit_stop: MergeProcessor = dataclasses.field(default_factory=lambda: MergeProcessor("PitStop"))
    pit_lane_time_collection: PitLaneTimeCollectionProcessor = dataclasses.field(
        default_factory=PitLaneTimeCollectionProcessor
    )
    car_data: CarDataProcessor = dataclasses.field(default_factory=CarDataProcessor)
    position: PositionProcessor = dataclasses.field(default_factory=PositionProcessor)
    # Generic processors for topics the registry does not know yet.
    extra: dict[str, MergeProcessor] = dataclasses.field(default_factory=dict)

    def __iter__(self) -> Iterator[Processor]:
        for field in dataclasses.fields(self):
            if field.name != "extra":
                yield getattr(self, field.name)
        yield from self.extra.values()

    def ensure_topic(self, topic: str) -> Processor:
        """Return the processor for *topic*, adding a generic one if none exists."""
        processor = self.for_topic(topic)
        if processor is None:
            processor = MergeProcessor(topic)
            self.extra[topic] = processor
        return processor

    def for_topic(self, topic: str) -> Processor | None:
        canonical = canonical_topic(topic)
        return next((processor for processor in self if processor.topic == canonical), None)


class TimingService:
    """Normalizes captured events once and fans them out to every processor.

    Usage::

        service = TimingService()
        for raw in parse_json_stream_lines("TimingData", body, start):
            service.enqueue(raw)
        index = service.build_index()
    """

    def __init__(self, config: PitwallConfig | None = None) -> None:
        self._config = config or PitwallConfig()
        self.processors = ProcessorSet()
        self.events_applied = 0

    @property
    def config(self) -> PitwallConfig:
        return self._config

    @property
    def session_topics(self) -> frozenset[str]:
        """Canonical topics published for the configured session kind."""
        return topics_for_session_kind(self._config.session_kind)

    def enqueue(self, raw: RawEvent) -> NormalizedEvent:
        """Normalize *raw* and apply it to every processor.

        Raises
        ------
        MalformedEventError
            If the payload cannot be normalized. No processor is touched.
        """
        event = normalize_raw(raw, max_inflate_bytes=self._config.max_inflate_bytes)
        self.apply(event)
        return event

    def enqueue_many(self, events: Iterable[RawEvent], *, skip_malformed: bool | None = None) -> int:
        """Enqueue events in order; returns how many were applied."""
        skip = self._config.skip_malformed if skip_malformed is None else skip_malformed
        applied = 0
        for raw in events:
            try:
                self.enqueue(raw)
            except MalformedEventError as exc:
                if not skip:
                    raise
                _logger.warning("Skipping malformed %s event at %s: %s", raw.topic, raw.timestamp.isoformat(), exc)
                continue
            applied += 1
        return applied

    def apply(self, event: NormalizedEvent) -> None:
        """Fan an already-normalized event out to every processor."""
        self.processors.ensure_topic(event.topic)
        for processor in self.processors:
            try:
                processor.process(event)
            except Exception:
                # A failing processor does not stop the others.
                _logger.warning(
                    "%s failed on %s event at %s; event ignored by this processor",
                    type(processor).__name__,
                    event.topic,
                    event.timestamp.isoformat(),
                    exc_info=True,
                )
        self.events_applied += 1

    def latest(self, topic: str) -> Any:
        """Current cumulative state for *topic* (canonical name or alias)."""
        processor = self.processors.for_topic(topic)
        return processor.latest if processor is not None else None

    def build_index(self) -> AnalysisIndex:
        """Snapshot the current processor state into a read-only analysis index."""
        return AnalysisIndex.build(self.processors, thresholds=self._config.traffic)
