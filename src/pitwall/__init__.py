"""pitwall - Live-timing ingestion and race-engineering analytics."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pitwall")
except PackageNotFoundError:
    __version__ = "0+local"
from pitwall.analysis.cursor import CursorSource, ResolvedCursor, TimeCursor, resolve_time_cursor
from pitwall.analysis.index import AnalysisIndex
from pitwall.analysis.metrics import classify_track_phase, parse_duration_ms
from pitwall.analysis.models import (
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
    StintPace,
    TrackPhase,
    UndercutWindow,
)
from pitwall.analysis.parsing import parse_lap_time_ms
from pitwall.analysis.traffic import DEFAULT_TRAFFIC_THRESHOLDS, TrafficLabel, TrafficThresholds, classify_traffic
from pitwall.config import PitwallConfig
from pitwall.exceptions import MalformedEventError, PayloadDecodeError, PitwallConfigError, PitwallError
from pitwall.ingestion.normalize import normalize_event, normalize_raw
from pitwall.ingestion.stream import parse_json_stream_lines
from pitwall.state.events import NormalizedEvent, RawEvent
from pitwall.state.store import ProcessorSet, TimingService
from pitwall.topics import TopicDefinition, definition_for, topics_for_session_kind

__all__ = [
    "__version__",
    "AnalysisIndex",
    "CursorSource",
    "DEFAULT_TRAFFIC_THRESHOLDS",
    "DriverComparison",
    "GapTrainReport",
    "LapDelta",
    "LapRecord",
    "MalformedEventError",
    "NormalizedEvent",
    "PayloadDecodeError",
    "PhasePeriod",
    "PitEvent",
    "PitEventKind",
    "PitLaneTimeStats",
    "PitwallConfig",
    "PitwallConfigError",
    "PitwallError",
    "PositionChange",
    "ProcessorSet",
    "RawEvent",
    "RejoinProjection",
    "ResolvedCursor",
    "ScVscDeltaReport",
    "StintPace",
    "TimeCursor",
    "TimingService",
    "TopicDefinition",
    "TrackPhase",
    "TrafficLabel",
    "TrafficThresholds",
    "UndercutWindow",
    "classify_track_phase",
    "classify_traffic",
    "definition_for",
    "normalize_event",
    "normalize_raw",
    "parse_duration_ms",
    "parse_json_stream_lines",
    "parse_lap_time_ms",
    "resolve_time_cursor",
    "topics_for_session_kind",
]
