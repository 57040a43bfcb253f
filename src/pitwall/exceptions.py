"""Custom exception hierarchy for pitwall."""

from __future__ import annotations


class PitwallError(Exception):
    """Base exception for all pitwall errors."""


class PitwallConfigError(PitwallError):
    """Invalid configuration value."""


class MalformedEventError(PitwallError):
    """Event payload cannot be represented as structured JSON data.

    Raised by the normalizer and surfaced to whoever feeds events in.
    Processors never raise this themselves; once an event is normalized
    every processor merges it best-effort.
    """

    def __init__(
        self,
        message: str,
        *,
        topic: str = "",
    ) -> None:
        self.topic = topic
        super().__init__(message)


class PayloadDecodeError(MalformedEventError):
    """Compressed ``.z`` payload could not be inflated or decoded."""
