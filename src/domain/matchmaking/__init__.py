"""Matchmaking queue rules and service."""

from domain.matchmaking.search import (
    DEFAULT_MATCHMAKING_PARAMETERS,
    MatchmakingParameters,
    QueuedPlayer,
    calculate_search_range,
    select_best_opponent,
)

__all__ = [
    "DEFAULT_MATCHMAKING_PARAMETERS",
    "MatchmakingParameters",
    "QueuedPlayer",
    "calculate_search_range",
    "select_best_opponent",
]
