"""Digit grid generation and the match game_data payload."""

from __future__ import annotations

import random
from typing import Any

from domain.events import PhaseTimings
from domain.scoring import DEFAULT_SCORING_PARAMETERS, ScoringParameters


def generate_digit_grid(
    pages: int = DEFAULT_SCORING_PARAMETERS.pages,
    rows_per_page: int = DEFAULT_SCORING_PARAMETERS.rows_per_page,
    digits_per_row: int = DEFAULT_SCORING_PARAMETERS.digits_per_row,
    rng: random.Random | None = None,
) -> list[list[list[int]]]:
    """Random ``[page][row][column]`` grid of digits 0-9."""
    if pages <= 0 or rows_per_page <= 0 or digits_per_row <= 0:
        raise ValueError("grid dimensions must be greater than 0")
    source = rng or random.Random()
    return [
        [[source.randrange(10) for _ in range(digits_per_row)] for _ in range(rows_per_page)]
        for _ in range(pages)
    ]


def build_game_data(
    grid: list[list[list[int]]],
    *,
    game_start_time: int,
    timings: PhaseTimings,
) -> dict[str, Any]:
    return {
        "numbersGrid": grid,
        "gameStartTime": game_start_time,
        "countdownDuration": timings.countdown_duration,
        "memorizationDuration": timings.memorization_duration,
        "recallDuration": timings.recall_duration,
    }


def grid_for_parameters(
    params: ScoringParameters = DEFAULT_SCORING_PARAMETERS,
    rng: random.Random | None = None,
) -> list[list[list[int]]]:
    return generate_digit_grid(params.pages, params.rows_per_page, params.digits_per_row, rng)


__all__ = ["build_game_data", "generate_digit_grid", "grid_for_parameters"]
