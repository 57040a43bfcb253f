"""Parsing of ``.jsonStream`` capture bodies.

Each non-empty line is a 12-character session offset (``HH:MM:SS.mmm``)
immediately followed by a JSON payload.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from datetime import datetime, timedelta

from pitwall.exceptions import MalformedEventError
from pitwall.state.events import RawEvent

_OFFSET_LENGTH = 12
_OFFSET_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})\.(\d{3})$")
_BOM = "\ufeff"


def parse_offset(offset: str) -> timedelta:
    """Parse an ``HH:MM:SS.mmm`` session offset."""
    match = _OFFSET_RE.match(offset)
    if match is None:
        raise ValueError(f"invalid stream offset {offset!r}")
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return timedelta(hours=hours, minutes=minutes, seconds=seconds, milliseconds=millis)


def iter_json_stream_lines(topic: str, raw: str, start: datetime) -> Iterator[RawEvent]:
    """Yield one :class:`RawEvent` per line of a capture body.

    Raises
    ------
    MalformedEventError
        If a line's offset or JSON payload cannot be parsed.
    """
    for line_number, line in enumerate(raw.splitlines(), start=1):
        line = line.lstrip(_BOM)
        if not line.strip():
            continue
        try:
            offset = parse_offset(line[:_OFFSET_LENGTH])
            payload = json.loads(line[_OFFSET_LENGTH:])
        except ValueError as exc:
            raise MalformedEventError(f"{topic} line {line_number}: {exc}", topic=topic) from exc
        yield RawEvent(topic=topic, payload=payload, timestamp=start + offset)


def parse_json_stream_lines(topic: str, raw: str, start: datetime) -> list[RawEvent]:
    return list(iter_json_stream_lines(topic, raw, start))
