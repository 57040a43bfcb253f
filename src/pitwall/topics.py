"""Static registry of live-timing topics.

Each topic has a canonical name (used as the processor key) and a stream
name (the file a loader downloads, ``{stream_name}.jsonStream``).
Compressed topics are published under a ``.z`` stream name; the canonical
name never carries the suffix.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

COMPRESSED_SUFFIX = ".z"
STREAM_FILE_SUFFIX = ".jsonStream"

RACE_SESSION_KINDS: frozenset[str] = frozenset({"Race", "Sprint"})


class TopicAvailability(StrEnum):
    ALL_SESSIONS = "all-sessions"
    RACE_ONLY = "race-only"


class TopicSemantics(StrEnum):
    """How successive messages of a topic relate to each other."""

    PATCH = "patch"
    REPLACE = "replace"
    BATCHED = "batched"


class TopicDefinition(BaseModel):
    """A single registry entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    topic: str = Field(..., description="Canonical topic name")
    stream_name: str = Field(..., description="Name used for the .jsonStream download")
    aliases: tuple[str, ...] = ()
    availability: TopicAvailability = TopicAvailability.ALL_SESSIONS
    semantics: TopicSemantics = TopicSemantics.PATCH
    notes: str | None = None

    @property
    def compressed(self) -> bool:
        return self.stream_name.endswith(COMPRESSED_SUFFIX)

    def matches(self, name: str) -> bool:
        return name in (self.topic, self.stream_name) or name in self.aliases


def _topic(
    topic: str,
    *,
    compressed: bool = False,
    availability: TopicAvailability = TopicAvailability.ALL_SESSIONS,
    semantics: TopicSemantics = TopicSemantics.PATCH,
    notes: str | None = None,
) -> TopicDefinition:
    stream_name = f"{topic}{COMPRESSED_SUFFIX}" if compressed else topic
    return TopicDefinition(
        topic=topic,
        stream_name=stream_name,
        aliases=(stream_name,) if compressed else (),
        availability=availability,
        semantics=semantics,
        notes=notes,
    )


TOPIC_REGISTRY: tuple[TopicDefinition, ...] = (
    _topic("Heartbeat", semantics=TopicSemantics.REPLACE),
    _topic(
        "CarData",
        compressed=True,
        semantics=TopicSemantics.BATCHED,
        notes="Base64 + raw deflate. Entries[] batches of per-car channels.",
    ),
    _topic(
        "Position",
        compressed=True,
        semantics=TopicSemantics.BATCHED,
        notes="Base64 + raw deflate. Position[] batches of per-car XYZ.",
    ),
    _topic("ExtrapolatedClock", semantics=TopicSemantics.REPLACE),
    _topic("TopThree", semantics=TopicSemantics.REPLACE),
    _topic("TimingStats"),
    _topic("TimingAppData"),
    _topic("WeatherData", semantics=TopicSemantics.REPLACE),
    _topic("TrackStatus", semantics=TopicSemantics.REPLACE),
    _topic("DriverList"),
    _topic("RaceControlMessages"),
    _topic("SessionInfo", semantics=TopicSemantics.REPLACE),
    _topic("SessionData", semantics=TopicSemantics.REPLACE),
    _topic("LapCount", availability=TopicAvailability.RACE_ONLY, semantics=TopicSemantics.REPLACE),
    _topic("TimingData"),
    _topic(
        "ChampionshipPrediction",
        availability=TopicAvailability.RACE_ONLY,
        semantics=TopicSemantics.REPLACE,
    ),
    _topic("TeamRadio"),
    _topic("PitLaneTimeCollection"),
    _topic("PitStopSeries"),
    _topic("PitStop", semantics=TopicSemantics.REPLACE),
)


def _strip_stream_file_suffix(name: str) -> str:
    if name.endswith(STREAM_FILE_SUFFIX):
        return name[: -len(STREAM_FILE_SUFFIX)]
    return name


def definition_for(name_or_alias: str) -> TopicDefinition | None:
    """Resolve a canonical name, stream name or alias to its definition."""
    name = _strip_stream_file_suffix(name_or_alias)
    for definition in TOPIC_REGISTRY:
        if definition.matches(name):
            return definition
    return None


def canonical_topic(name: str) -> str:
    """Return the canonical topic for *name*.

    Unknown names pass through with only the ``.jsonStream`` suffix removed,
    so topics added to the feed later still reach the generic processors.
    """
    definition = definition_for(name)
    if definition is not None:
        return definition.topic
    return _strip_stream_file_suffix(name)


def _definitions_for_session_kind(kind: str) -> list[TopicDefinition]:
    is_race = kind in RACE_SESSION_KINDS
    return [
        definition
        for definition in TOPIC_REGISTRY
        if definition.availability == TopicAvailability.ALL_SESSIONS
        or (is_race and definition.availability == TopicAvailability.RACE_ONLY)
    ]


def topics_for_session_kind(kind: str) -> frozenset[str]:
    """Canonical topic names published for a session kind (``"Race"``, ``"Qualifying"``...)."""
    return frozenset(definition.topic for definition in _definitions_for_session_kind(kind))


def stream_names_for_session_kind(kind: str) -> list[str]:
    """Stream names a loader should fetch for a session kind, in registry order."""
    return [definition.stream_name for definition in _definitions_for_session_kind(kind)]
