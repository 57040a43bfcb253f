"""Raw and normalized ingestion events.

Loaders produce :class:`RawEvent` triples; the normalizer turns them into
:class:`NormalizedEvent`. Only the processors in :mod:`pitwall.state` are
allowed to merge them into state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _ensure_tz_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class RawEvent(BaseModel):
    """An event as captured from the feed, before topic resolution."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., description="Topic or stream name as captured")
    payload: Any = Field(default=None, description="JSON payload (or compressed string)")
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _timestamp_tz(cls, value: datetime) -> datetime:
        return _ensure_tz_aware(value)


class NormalizedEvent(BaseModel):
    """A canonicalized update, fanned out to every processor."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., description="Canonical topic name")
    payload: Any = Field(default=None, description="Structured JSON payload")
    timestamp: datetime

    @field_validator("topic")
    @classmethod
    def _normalize_topic(cls, value: str) -> str:
        topic = value.strip()
        if not topic:
            raise ValueError("topic must be non-empty")
        return topic

    @field_validator("timestamp")
    @classmethod
    def _timestamp_tz(cls, value: datetime) -> datetime:
        return _ensure_tz_aware(value)
