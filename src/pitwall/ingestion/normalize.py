"""Event normalization.

Turns a captured ``(topic, payload, timestamp)`` triple into a
:class:`~pitwall.state.events.NormalizedEvent`:

- resolve the topic to its canonical name (dropping ``.z``/``.jsonStream``)
- inflate compressed payloads that are still base64 strings
- canonicalize payload shapes the feed patches by array index
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pitwall._logfmt import summarize_for_log
from pitwall.exceptions import MalformedEventError, PayloadDecodeError
from pitwall.ingestion.codec import DEFAULT_MAX_OUTPUT_BYTES, decode_compressed_json
from pitwall.state.events import NormalizedEvent, RawEvent
from pitwall.topics import COMPRESSED_SUFFIX, canonical_topic, definition_for

_logger = logging.getLogger(__name__)

# Feed bookkeeping key present on keyframe payloads.
_KEYFRAME_KEY = "_kf"
_DELETED_KEY = "_deleted"


def _check_structured(value: Any, *, topic: str, _depth: int = 0) -> None:
    """Raise if *value* is not representable as JSON."""
    if _depth > 64:
        raise MalformedEventError("payload nesting too deep", topic=topic)
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedEventError(f"non-finite number in payload: {value!r}", topic=topic)
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedEventError(f"non-string key in payload: {key!r}", topic=topic)
            _check_structured(item, topic=topic, _depth=_depth + 1)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _check_structured(item, topic=topic, _depth=_depth + 1)
        return
    raise MalformedEventError(f"unsupported payload type {type(value).__name__}", topic=topic)


def array_to_indexed_object(value: Any) -> Any:
    """``[a, b]`` → ``{"0": a, "1": b}``; anything else unchanged.

    The feed sends some collections as arrays in keyframes and then patches
    individual elements by index, so state keeps them as index-keyed maps.
    """
    if not isinstance(value, list):
        return value
    return {str(index): item for index, item in enumerate(value)}


def _index_line_field(obj: dict[str, Any], field: str) -> None:
    lines = obj.get("Lines")
    if not isinstance(lines, dict):
        return
    for line in lines.values():
        if isinstance(line, dict) and isinstance(line.get(field), list):
            line[field] = array_to_indexed_object(line[field])


def _normalize_timing_data(obj: dict[str, Any]) -> None:
    _index_line_field(obj, "Sectors")
    lines = obj.get("Lines")
    if not isinstance(lines, dict):
        return
    for line in lines.values():
        sectors = line.get("Sectors") if isinstance(line, dict) else None
        if not isinstance(sectors, dict):
            continue
        for sector in sectors.values():
            if isinstance(sector, dict) and isinstance(sector.get("Segments"), list):
                sector["Segments"] = array_to_indexed_object(sector["Segments"])


def _normalize_pit_stop_series(obj: dict[str, Any]) -> None:
    pit_times = obj.get("PitTimes")
    if not isinstance(pit_times, dict):
        return
    for driver, value in pit_times.items():
        pit_times[driver] = array_to_indexed_object(value)


def canonicalize_payload(topic: str, payload: Any) -> Any:
    """Return a copy of *payload* with topic-specific shape fixes applied."""
    if not isinstance(payload, dict):
        return copy.deepcopy(payload)

    obj = copy.deepcopy(payload)
    obj.pop(_KEYFRAME_KEY, None)

    if topic == "RaceControlMessages" and isinstance(obj.get("Messages"), list):
        obj["Messages"] = array_to_indexed_object(obj["Messages"])
    elif topic == "TimingData":
        _normalize_timing_data(obj)
    elif topic == "TimingAppData":
        _index_line_field(obj, "Stints")
    elif topic == "TeamRadio" and isinstance(obj.get("Captures"), list):
        obj["Captures"] = array_to_indexed_object(obj["Captures"])
    elif topic == "PitStopSeries":
        _normalize_pit_stop_series(obj)
    elif topic == "PitLaneTimeCollection" and isinstance(obj.get("PitTimes"), dict):
        obj["PitTimes"].pop(_DELETED_KEY, None)
    return obj


def normalize_event(
    topic: str,
    payload: Any,
    timestamp: datetime,
    *,
    max_inflate_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> NormalizedEvent:
    """Normalize one captured event.

    Unknown topics pass through unchanged so new feed topics still reach
    the generic processors.

    Raises
    ------
    MalformedEventError
        If the payload cannot be represented as structured JSON data.
    """
    canonical = canonical_topic(topic)
    definition = definition_for(topic)

    data = payload
    compressed_name = topic.endswith(COMPRESSED_SUFFIX) or (definition is not None and definition.compressed)
    if compressed_name and isinstance(payload, str):
        try:
            data = decode_compressed_json(payload, max_output_bytes=max_inflate_bytes)
        except PayloadDecodeError as exc:
            exc.topic = canonical
            raise

    _check_structured(data, topic=canonical)
    normalized = canonicalize_payload(canonical, data)

    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug("Normalized %s -> %s: %s", topic, canonical, summarize_for_log(normalized))

    return NormalizedEvent(topic=canonical, payload=normalized, timestamp=timestamp)


def normalize_raw(event: RawEvent, *, max_inflate_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> NormalizedEvent:
    return normalize_event(event.topic, event.payload, event.timestamp, max_inflate_bytes=max_inflate_bytes)
