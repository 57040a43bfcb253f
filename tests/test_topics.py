from __future__ import annotations

import pytest

from pitwall.topics import (
    TOPIC_REGISTRY,
    TopicAvailability,
    canonical_topic,
    definition_for,
    stream_names_for_session_kind,
    topics_for_session_kind,
)


def test_race_kinds_include_race_only_topics() -> None:
    for kind in ("Race", "Sprint"):
        topics = topics_for_session_kind(kind)
        assert "LapCount" in topics
        assert "ChampionshipPrediction" in topics
        assert "TimingData" in topics


def test_non_race_kinds_exclude_race_only_topics() -> None:
    topics = topics_for_session_kind("Qualifying")
    assert "LapCount" not in topics
    assert "ChampionshipPrediction" not in topics
    assert "TimingData" in topics
    assert "Position" in topics


def test_base_set_is_subset_of_race_set() -> None:
    assert topics_for_session_kind("Practice") < topics_for_session_kind("Race")


def test_topics_for_session_kind_uses_canonical_names() -> None:
    topics = topics_for_session_kind("Race")
    assert "CarData" in topics
    assert "CarData.z" not in topics


def test_stream_names_keep_compressed_suffix() -> None:
    names = stream_names_for_session_kind("Race")
    assert "CarData.z" in names
    assert "Position.z" in names
    assert "LapCount" in names
    assert "LapCount" not in stream_names_for_session_kind("Qualifying")


@pytest.mark.parametrize("name", ["Position", "Position.z", "Position.z.jsonStream", "Position.jsonStream"])
def test_definition_for_resolves_aliases(name: str) -> None:
    definition = definition_for(name)
    assert definition is not None
    assert definition.topic == "Position"
    assert definition.compressed


def test_definition_for_is_idempotent() -> None:
    for definition in TOPIC_REGISTRY:
        for name in (definition.topic, definition.stream_name, *definition.aliases):
            resolved = definition_for(name)
            assert resolved is not None
            assert definition_for(resolved.topic) == resolved


def test_definition_for_unknown_returns_none() -> None:
    assert definition_for("SomethingNew") is None


def test_canonical_topic_passes_unknown_names_through() -> None:
    assert canonical_topic("CarData.z") == "CarData"
    assert canonical_topic("SomethingNew") == "SomethingNew"
    assert canonical_topic("SomethingNew.jsonStream") == "SomethingNew"


def test_registry_availability_values() -> None:
    race_only = {d.topic for d in TOPIC_REGISTRY if d.availability == TopicAvailability.RACE_ONLY}
    assert race_only == {"LapCount", "ChampionshipPrediction"}
