"""Unit tests for player Elo and rating-deviation helpers."""

from __future__ import annotations

import pytest

from domain.rating import (
    MatchResult,
    PlayerRating,
    RatingParameters,
    calculate_expected_score,
    calculate_new_rating,
    confidence_interval,
    determine_match_result,
    dynamic_k_factor,
    rating_deviation,
    rating_floor,
    update_player_ratings,
    win_probability,
)


def test_expected_score_is_logistic_in_rating_gap() -> None:
    assert calculate_expected_score(1500, 1500) == pytest.approx(0.5)
    assert calculate_expected_score(1500, 1900) == pytest.approx(1.0 / 11.0)
    assert calculate_expected_score(1900, 1500) + calculate_expected_score(1500, 1900) == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("games_played", "peak_rating", "expected_k"),
    [
        (5, 2400, 10),
        (100, 2450, 10),
        (0, None, 40),
        (29, 2000, 40),
        (30, 2399, 20),
        (300, None, 20),
    ],
)
def test_dynamic_k_factor(games_played: int, peak_rating: int | None, expected_k: int) -> None:
    assert dynamic_k_factor(games_played, peak_rating) == expected_k


def test_even_win_with_standard_k_moves_ten_points() -> None:
    update = calculate_new_rating(1500, 1500, 1.0, 20)

    assert update.rating_change == 10
    assert update.new_rating == 1510
    assert update.expected_score == pytest.approx(0.5)
    assert update.k_factor == 20


def test_rating_change_rounds_half_up() -> None:
    assert calculate_new_rating(1500, 1500, 1.0, 21).rating_change == 11
    assert calculate_new_rating(1500, 1500, 0.0, 21).rating_change == -10


def test_new_rating_never_drops_below_floor() -> None:
    update = calculate_new_rating(100, 100, 0.0, 40)

    assert update.rating_change == -20
    assert update.new_rating == 100


def test_actual_score_outside_unit_interval_is_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_new_rating(1500, 1500, 1.5, 20)


def test_update_is_symmetric_under_player_swap() -> None:
    strong = PlayerRating(rating=1820, games_played=45, peak_rating=1850)
    newcomer = PlayerRating(rating=1500, games_played=3, peak_rating=1500)

    forward = update_player_ratings(strong, newcomer, MatchResult.PLAYER2)
    swapped = update_player_ratings(newcomer, strong, MatchResult.PLAYER1)

    assert forward.player1 == swapped.player2
    assert forward.player2 == swapped.player1
    assert forward.player1.k_factor == 20
    assert forward.player2.k_factor == 40


def test_draw_between_equals_changes_nothing() -> None:
    update = update_player_ratings(PlayerRating(1600, 50), PlayerRating(1600, 50), "draw")

    assert update.player1.rating_change == 0
    assert update.player2.rating_change == 0


def test_custom_parameters_change_floor_and_k() -> None:
    params = RatingParameters(rating_floor=500, k_standard=32, provisional_games=0)
    update = update_player_ratings(PlayerRating(510), PlayerRating(510), MatchResult.PLAYER2, params)

    assert update.player1.k_factor == 32
    assert update.player1.new_rating == 500
    assert update.player2.new_rating == 526


def test_determine_match_result_and_win_probability() -> None:
    assert determine_match_result(80, 40) is MatchResult.PLAYER1
    assert determine_match_result(10, 40) is MatchResult.PLAYER2
    assert determine_match_result(40, 40) is MatchResult.DRAW
    assert win_probability(1500, 1500) == 50
    assert win_probability(1900, 1500) == 91


def test_rating_deviation_grows_with_inactivity_and_is_capped() -> None:
    assert rating_deviation(50.0) == pytest.approx(50.0)
    assert rating_deviation(50.0, 10) == pytest.approx((50.0**2 + 34.6**2 * 10) ** 0.5)
    assert rating_deviation(300.0, 100) == pytest.approx(350.0)


def test_rating_deviation_rejects_negative_periods() -> None:
    with pytest.raises(ValueError):
        rating_deviation(50.0, -1)


def test_confidence_interval_and_peak_floor() -> None:
    assert confidence_interval(1500, 350.0) == (800, 2200)
    assert confidence_interval(300, 350.0) == (100, 1000)
    assert rating_floor(2500) == 2300
    assert rating_floor(250) == 100
