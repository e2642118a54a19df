"""Pure matchmaking rules: the expanding rating window and opponent choice."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from math import floor


@dataclass(frozen=True)
class MatchmakingParameters:
    base_range: int = 100
    expansion_rate: int = 10
    max_range: int = 500
    interval_seconds: float = 5.0
    candidate_limit: int = 10
    wait_discount: float = 2.0
    stale_after_seconds: int = 300
    poll_interval_seconds: float = 2.0


DEFAULT_MATCHMAKING_PARAMETERS = MatchmakingParameters()


@dataclass(frozen=True)
class QueuedPlayer:
    user_id: int
    rating: int
    event_type: str
    joined_at: datetime


def wait_seconds(joined_at: datetime, now: datetime) -> float:
    return max(0.0, (now - joined_at).total_seconds())


def calculate_search_range(
    wait_time_seconds: float,
    params: MatchmakingParameters = DEFAULT_MATCHMAKING_PARAMETERS,
) -> int:
    """Rating radius after waiting: grows one step per full interval, capped."""
    steps = floor(max(0.0, wait_time_seconds) / params.interval_seconds)
    return min(params.base_range + steps * params.expansion_rate, params.max_range)


def rating_window(
    rating: int,
    wait_time_seconds: float,
    params: MatchmakingParameters = DEFAULT_MATCHMAKING_PARAMETERS,
) -> tuple[int, int]:
    radius = calculate_search_range(wait_time_seconds, params)
    return rating - radius, rating + radius


def candidate_score(
    candidate: QueuedPlayer,
    my_rating: int,
    now: datetime,
    params: MatchmakingParameters = DEFAULT_MATCHMAKING_PARAMETERS,
) -> float:
    """Lower is better: close ratings, with long-waiting candidates favoured."""
    return abs(candidate.rating - my_rating) - wait_seconds(candidate.joined_at, now) * params.wait_discount


def select_best_opponent(
    candidates: Sequence[QueuedPlayer],
    my_rating: int,
    now: datetime,
    params: MatchmakingParameters = DEFAULT_MATCHMAKING_PARAMETERS,
) -> QueuedPlayer | None:
    """Pick the lowest-scoring candidate; ties keep the earliest joiner."""
    best: QueuedPlayer | None = None
    best_score = 0.0
    for candidate in candidates:
        score = candidate_score(candidate, my_rating, now, params)
        if best is None or score < best_score:
            best = candidate
            best_score = score
    return best


__all__ = [
    "DEFAULT_MATCHMAKING_PARAMETERS",
    "MatchmakingParameters",
    "QueuedPlayer",
    "calculate_search_range",
    "candidate_score",
    "rating_window",
    "select_best_opponent",
    "wait_seconds",
]
