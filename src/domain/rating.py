"""Player Elo logic with dynamic K-factors and a rating-deviation model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from math import sqrt

from domain.common import round_half_up


@dataclass(frozen=True)
class RatingParameters:
    initial_rating: int = 1500
    scale_factor: float = 400.0
    rating_floor: int = 100
    master_threshold: int = 2400
    provisional_games: int = 30
    k_master: int = 10
    k_provisional: int = 40
    k_standard: int = 20
    max_deviation: float = 350.0
    deviation_constant: float = 34.6
    peak_floor_margin: int = 200


DEFAULT_RATING_PARAMETERS = RatingParameters()


class MatchResult(str, Enum):
    """Match outcome from player1's point of view."""

    PLAYER1 = "player1"
    PLAYER2 = "player2"
    DRAW = "draw"


@dataclass(frozen=True)
class PlayerRating:
    """Rating state the engine needs for one player."""

    rating: int
    games_played: int = 0
    peak_rating: int | None = None
    rating_deviation: float = 350.0


@dataclass(frozen=True)
class RatingUpdate:
    new_rating: int
    rating_change: int
    expected_score: float
    k_factor: int


@dataclass(frozen=True)
class MatchRatingUpdate:
    player1: RatingUpdate
    player2: RatingUpdate


def calculate_expected_score(
    rating: float,
    opponent_rating: float,
    scale_factor: float = 400.0,
) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale_factor))


def dynamic_k_factor(
    games_played: int,
    peak_rating: int | None = None,
    params: RatingParameters = DEFAULT_RATING_PARAMETERS,
) -> int:
    """Pick K: titled players move slowest, provisional players fastest."""
    if peak_rating is not None and peak_rating >= params.master_threshold:
        return params.k_master
    if games_played < params.provisional_games:
        return params.k_provisional
    return params.k_standard


def calculate_new_rating(
    current_rating: int,
    opponent_rating: int,
    actual_score: float,
    k_factor: int,
    params: RatingParameters = DEFAULT_RATING_PARAMETERS,
) -> RatingUpdate:
    if actual_score < 0.0 or actual_score > 1.0:
        raise ValueError(f"actual_score={actual_score} must be between 0 and 1")

    expected = calculate_expected_score(current_rating, opponent_rating, params.scale_factor)
    rating_change = round_half_up(k_factor * (actual_score - expected))
    return RatingUpdate(
        new_rating=max(params.rating_floor, current_rating + rating_change),
        rating_change=rating_change,
        expected_score=expected,
        k_factor=k_factor,
    )


def actual_scores(result: MatchResult | str) -> tuple[float, float]:
    """Map a match result to (player1, player2) actual scores."""
    outcome = MatchResult(result)
    if outcome is MatchResult.PLAYER1:
        return 1.0, 0.0
    if outcome is MatchResult.PLAYER2:
        return 0.0, 1.0
    return 0.5, 0.5


def update_player_ratings(
    player1: PlayerRating,
    player2: PlayerRating,
    result: MatchResult | str,
    params: RatingParameters = DEFAULT_RATING_PARAMETERS,
) -> MatchRatingUpdate:
    """Update both players against each other's pre-match rating.

    The two updates are independent: neither side sees the other's new
    rating, so swapping the players swaps the outputs and nothing else.
    """
    player1_score, player2_score = actual_scores(result)
    player1_k = dynamic_k_factor(player1.games_played, player1.peak_rating, params)
    player2_k = dynamic_k_factor(player2.games_played, player2.peak_rating, params)

    return MatchRatingUpdate(
        player1=calculate_new_rating(player1.rating, player2.rating, player1_score, player1_k, params),
        player2=calculate_new_rating(player2.rating, player1.rating, player2_score, player2_k, params),
    )


def determine_match_result(player1_score: int, player2_score: int) -> MatchResult:
    if player1_score > player2_score:
        return MatchResult.PLAYER1
    if player2_score > player1_score:
        return MatchResult.PLAYER2
    return MatchResult.DRAW


def win_probability(rating: float, opponent_rating: float) -> int:
    """Expected score as a whole percentage."""
    return round_half_up(calculate_expected_score(rating, opponent_rating) * 100)


def rating_deviation(
    current_rd: float,
    inactive_periods: int = 0,
    c: float = 34.6,
    max_deviation: float = 350.0,
) -> float:
    """Inflate a rating deviation for inactive rating periods, capped at the initial RD."""
    if inactive_periods < 0:
        raise ValueError(f"inactive_periods={inactive_periods} must be >= 0")
    inflated = sqrt(current_rd * current_rd + c * c * inactive_periods)
    return max(0.0, min(max_deviation, inflated))


def confidence_interval(
    rating: int,
    deviation: float,
    params: RatingParameters = DEFAULT_RATING_PARAMETERS,
) -> tuple[int, int]:
    """95% interval, never below the absolute rating floor."""
    return (
        max(params.rating_floor, round_half_up(rating - 2 * deviation)),
        round_half_up(rating + 2 * deviation),
    )


def rating_floor(peak_rating: int, params: RatingParameters = DEFAULT_RATING_PARAMETERS) -> int:
    """Lowest rating a player should be allowed relative to their best.

    Not applied by calculate_new_rating; callers opt in.
    """
    return max(params.rating_floor, peak_rating - params.peak_floor_margin)


__all__ = [
    "DEFAULT_RATING_PARAMETERS",
    "MatchRatingUpdate",
    "MatchResult",
    "PlayerRating",
    "RatingParameters",
    "RatingUpdate",
    "actual_scores",
    "calculate_expected_score",
    "calculate_new_rating",
    "confidence_interval",
    "determine_match_result",
    "dynamic_k_factor",
    "rating_deviation",
    "rating_floor",
    "update_player_ratings",
    "win_probability",
]
