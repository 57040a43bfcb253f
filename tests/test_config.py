from __future__ import annotations

import pytest

from pitwall.analysis.traffic import DEFAULT_TRAFFIC_THRESHOLDS, TrafficThresholds
from pitwall.config import PitwallConfig
from pitwall.exceptions import PitwallConfigError
from pitwall.ingestion.codec import DEFAULT_MAX_OUTPUT_BYTES

_ENV_KEYS = (
    "PITWALL_SESSION_KIND",
    "PITWALL_MAX_INFLATE_BYTES",
    "PITWALL_SKIP_MALFORMED",
    "PITWALL_TRAFFIC_TRAFFIC_AHEAD_BASE",
    "PITWALL_TRAFFIC_CLEAN_BEHIND_FACTOR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = PitwallConfig.from_env()
    assert config.session_kind == "Race"
    assert config.max_inflate_bytes == DEFAULT_MAX_OUTPUT_BYTES
    assert config.skip_malformed is False
    assert config.traffic == DEFAULT_TRAFFIC_THRESHOLDS


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PITWALL_SESSION_KIND", "Qualifying")
    monkeypatch.setenv("PITWALL_MAX_INFLATE_BYTES", "1024")
    monkeypatch.setenv("PITWALL_SKIP_MALFORMED", "yes")
    monkeypatch.setenv("PITWALL_TRAFFIC_TRAFFIC_AHEAD_BASE", "1.5")

    config = PitwallConfig.from_env()

    assert config.session_kind == "Qualifying"
    assert config.max_inflate_bytes == 1024
    assert config.skip_malformed is True
    assert config.traffic.traffic_ahead_base == 1.5
    assert config.traffic.clean_ahead_base == DEFAULT_TRAFFIC_THRESHOLDS.clean_ahead_base


def test_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PITWALL_SESSION_KIND", "Qualifying")
    monkeypatch.setenv("PITWALL_SKIP_MALFORMED", "1")
    monkeypatch.setenv("PITWALL_TRAFFIC_CLEAN_BEHIND_FACTOR", "0.5")

    config = PitwallConfig.from_env(session_kind="Sprint", skip_malformed=False, traffic={"clean_behind_base": 2.0})

    assert config.session_kind == "Sprint"
    assert config.skip_malformed is False
    assert config.traffic.clean_behind_base == 2.0
    assert config.traffic.clean_behind_factor == 0.5


def test_threshold_object_override() -> None:
    thresholds = TrafficThresholds(traffic_behind_base=0.3)
    assert PitwallConfig.from_env(traffic=thresholds).traffic == thresholds


def test_invalid_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PITWALL_MAX_INFLATE_BYTES", "lots")
    with pytest.raises(PitwallConfigError, match="PITWALL_MAX_INFLATE_BYTES"):
        PitwallConfig.from_env()


def test_invalid_values_rejected() -> None:
    with pytest.raises(PitwallConfigError):
        PitwallConfig(max_inflate_bytes=0)
    with pytest.raises(PitwallConfigError):
        PitwallConfig(session_kind="  ")
