"""Event-type presets and their phase timings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Final


class EventType(str, Enum):
    """Built-in timing presets. Config files may add more names."""

    SPEED = "speed"
    NATIONAL = "national"
    INTERNATIONAL = "international"
    HOUR = "hour"


DEFAULT_EVENT_TYPE: Final[str] = EventType.SPEED.value


@dataclass(frozen=True)
class PhaseTimings:
    """Phase durations in seconds."""

    countdown_duration: int
    memorization_duration: int
    recall_duration: int

    def as_config_json(self) -> dict[str, Any]:
        return {
            "countdown_duration": self.countdown_duration,
            "memorization_duration": self.memorization_duration,
            "recall_duration": self.recall_duration,
        }


EVENT_TIMINGS: Final[Mapping[str, PhaseTimings]] = MappingProxyType(
    {
        EventType.SPEED.value: PhaseTimings(5, 300, 900),
        EventType.NATIONAL.value: PhaseTimings(5, 900, 1800),
        EventType.INTERNATIONAL.value: PhaseTimings(5, 1800, 3600),
        EventType.HOUR.value: PhaseTimings(5, 3600, 7200),
    }
)


def _event_key(event_type: str | EventType | None) -> str:
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type or "").strip().lower()


def resolve_event_type(
    event_type: str | EventType | None,
    timings: Mapping[str, PhaseTimings] = EVENT_TIMINGS,
) -> str:
    """Return the table key for an event type, falling back to speed."""
    key = _event_key(event_type)
    if key in timings:
        return key
    return DEFAULT_EVENT_TYPE


def get_event_timings(
    event_type: str | EventType | None,
    timings: Mapping[str, PhaseTimings] = EVENT_TIMINGS,
) -> PhaseTimings:
    """Look up phase timings; unknown event types use the speed preset."""
    key = resolve_event_type(event_type, timings)
    if key in timings:
        return timings[key]
    return EVENT_TIMINGS[DEFAULT_EVENT_TYPE]


__all__ = [
    "DEFAULT_EVENT_TYPE",
    "EVENT_TIMINGS",
    "EventType",
    "PhaseTimings",
    "get_event_timings",
    "resolve_event_type",
]
