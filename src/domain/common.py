"""Shared helpers for match-engine domain modules."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from math import floor

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going toward +infinity.

    Built-in round() uses banker's rounding, which would turn a +10.5 rating
    change into +10.
    """
    return int(floor(value + 0.5))


def to_epoch_millis(moment: datetime) -> int:
    """Epoch milliseconds for a naive-UTC or aware datetime."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(round(moment.timestamp() * 1000))


__all__ = ["Clock", "round_half_up", "to_epoch_millis", "utc_now"]
