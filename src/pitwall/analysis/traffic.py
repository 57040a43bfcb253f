"""Traffic classification of a car's lap from the gaps around it."""

from __future__ import annotations

import dataclasses
import math
from enum import StrEnum


class TrafficLabel(StrEnum):
    TRAFFIC = "traffic"
    CLEAN = "clean"
    NEUTRAL = "neutral"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True)
class TrafficThresholds:
    """Gap thresholds in seconds, each scaled as ``max(base, factor * lap_time_s)``."""

    traffic_ahead_base: float = 1.0
    traffic_ahead_factor: float = 0.012
    traffic_behind_base: float = 0.8
    traffic_behind_factor: float = 0.010
    clean_ahead_base: float = 1.7
    clean_ahead_factor: float = 0.018
    clean_behind_base: float = 1.3
    clean_behind_factor: float = 0.014


DEFAULT_TRAFFIC_THRESHOLDS = TrafficThresholds()


def classify_traffic(
    gap_ahead_sec: float | None,
    gap_behind_sec: float | None,
    lap_time_ms: float | None,
    is_green: bool,
    thresholds: TrafficThresholds = DEFAULT_TRAFFIC_THRESHOLDS,
) -> TrafficLabel:
    """Label a lap ``traffic``, ``clean``, ``neutral`` or ``unknown``.

    ``traffic`` wins whenever either gap is inside its traffic threshold.
    ``clean`` requires a green track and both gaps outside their clean
    thresholds; a lap under any other track status is at best ``neutral``.
    """
    if lap_time_ms is None or gap_ahead_sec is None or gap_behind_sec is None:
        return TrafficLabel.UNKNOWN
    if not (math.isfinite(lap_time_ms) and math.isfinite(gap_ahead_sec) and math.isfinite(gap_behind_sec)):
        return TrafficLabel.UNKNOWN

    lap_time_sec = lap_time_ms / 1000
    traffic_ahead = max(thresholds.traffic_ahead_base, thresholds.traffic_ahead_factor * lap_time_sec)
    traffic_behind = max(thresholds.traffic_behind_base, thresholds.traffic_behind_factor * lap_time_sec)
    clean_ahead = max(thresholds.clean_ahead_base, thresholds.clean_ahead_factor * lap_time_sec)
    clean_behind = max(thresholds.clean_behind_base, thresholds.clean_behind_factor * lap_time_sec)

    if gap_ahead_sec <= traffic_ahead or gap_behind_sec <= traffic_behind:
        return TrafficLabel.TRAFFIC
    if is_green and gap_ahead_sec >= clean_ahead and gap_behind_sec >= clean_behind:
        return TrafficLabel.CLEAN
    return TrafficLabel.NEUTRAL
