"""Configuration for pitwall."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pitwall.analysis.traffic import DEFAULT_TRAFFIC_THRESHOLDS, TrafficThresholds
from pitwall.exceptions import PitwallConfigError
from pitwall.ingestion.codec import DEFAULT_MAX_OUTPUT_BYTES


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise PitwallConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class PitwallConfig:
    """Session ingestion and analysis settings.

    Parameters
    ----------
    session_kind : str
        Session kind (``"Race"``, ``"Sprint"``, ``"Qualifying"``...). Selects
        which registry topics a loader should fetch.
    max_inflate_bytes : int
        Upper bound on the inflated size of a compressed ``.z`` payload.
    skip_malformed : bool
        When ``True``, :meth:`TimingService.enqueue_many` logs and skips
        events whose payload cannot be normalized instead of raising.
    traffic : TrafficThresholds
        Gap thresholds used for traffic labels on lap records.
    """

    session_kind: str = "Race"
    max_inflate_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    skip_malformed: bool = False
    traffic: TrafficThresholds = dataclasses.field(default_factory=lambda: DEFAULT_TRAFFIC_THRESHOLDS)

    def __post_init__(self) -> None:
        if self.max_inflate_bytes <= 0:
            raise PitwallConfigError(f"max_inflate_bytes must be positive, got {self.max_inflate_bytes}")
        if not self.session_kind.strip():
            raise PitwallConfigError("session_kind must be non-empty")

    @classmethod
    def from_env(cls, **overrides: Any) -> PitwallConfig:
        """Create configuration from ``PITWALL_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PitwallConfig
            Populated configuration.

        Raises
        ------
        PitwallConfigError
            If a numeric variable does not parse.
        """
        env = os.environ

        traffic_kwargs: dict[str, float] = {}
        for field in dataclasses.fields(TrafficThresholds):
            env_key = f"PITWALL_TRAFFIC_{field.name.upper()}"
            val = env.get(env_key)
            if val is not None:
                traffic_kwargs[field.name] = float(_env_number(env_key, val, float))

        # Allow overriding thresholds via a nested dict
        traffic_overrides = overrides.pop("traffic", None)
        if isinstance(traffic_overrides, dict):
            traffic_kwargs.update(traffic_overrides)
        elif isinstance(traffic_overrides, TrafficThresholds):
            traffic_kwargs = dataclasses.asdict(traffic_overrides)

        traffic = TrafficThresholds(**traffic_kwargs) if traffic_kwargs else DEFAULT_TRAFFIC_THRESHOLDS
        config_kwargs: dict[str, Any] = {"traffic": traffic}

        session_kind = env.get("PITWALL_SESSION_KIND")
        if session_kind is not None:
            config_kwargs["session_kind"] = session_kind

        inflate_env = env.get("PITWALL_MAX_INFLATE_BYTES")
        if inflate_env is not None and "max_inflate_bytes" not in overrides:
            config_kwargs["max_inflate_bytes"] = int(_env_number("PITWALL_MAX_INFLATE_BYTES", inflate_env, int))

        if "skip_malformed" not in overrides:
            config_kwargs["skip_malformed"] = _env_bool(env.get("PITWALL_SKIP_MALFORMED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
