"""WMC row-based scoring for number-memorization events.

Grids are shaped ``[page][row][column]``. Recalled cells are strings holding
one digit or ``""``; actual cells are digits (ints or digit strings).

Only the attempted part of each row is scored: everything after the last
filled cell is ignored, so a player is never penalised for stopping early.
Cells that do not exist in both grids are left unscored rather than treated
as malformed input.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from domain.common import round_half_up

DIGITS_PER_ROW: Final[int] = 40
HOUR_NUMBERS_STANDARD: Final[int] = 3234

RecalledGrid = Sequence[Sequence[Sequence[str | None]]]
ActualGrid = Sequence[Sequence[Sequence[int | str]]]


class ScoringVariant(str, Enum):
    WMC = "wmc"
    USA = "usa"


@dataclass(frozen=True)
class ScoringParameters:
    digits_per_row: int = DIGITS_PER_ROW
    rows_per_page: int = 12
    pages: int = 3
    millennium_standard: int = HOUR_NUMBERS_STANDARD
    variant: ScoringVariant = ScoringVariant.WMC


DEFAULT_SCORING_PARAMETERS = ScoringParameters()


@dataclass(frozen=True)
class RowScore:
    row_index: int
    errors: int
    score: int
    is_complete: bool

    def as_json(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "errors": self.errors,
            "score": self.score,
            "isComplete": self.is_complete,
        }


@dataclass(frozen=True)
class ScoringResult:
    total_score: int
    correct_count: int
    wrong_count: int
    row_scores: tuple[RowScore, ...]

    def as_json(self) -> dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "correctCount": self.correct_count,
            "wrongCount": self.wrong_count,
            "rowScores": [row.as_json() for row in self.row_scores],
        }


def _item(container: Sequence[Any] | None, index: int) -> Sequence[Any]:
    if container is None or index >= len(container):
        return ()
    return container[index] or ()


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _attempted_cells(recalled_row: Sequence[Any], actual_length: int) -> list[str]:
    comparable = [_cell(value) for value in recalled_row[:actual_length]]
    last_filled_index = -1
    for index in range(len(comparable) - 1, -1, -1):
        if comparable[index] != "":
            last_filled_index = index
            break
    return comparable[: last_filled_index + 1]


def _row_credit(length: int, errors: int, is_complete: bool, variant: ScoringVariant) -> int:
    if errors == 0:
        return length
    if variant is ScoringVariant.USA or errors > 1:
        return 0
    # One error: complete rows round down, partial rows round up.
    if is_complete:
        return length // 2
    return (length + 1) // 2


def score_number_event(
    recalled: RecalledGrid,
    actual: ActualGrid,
    digits_per_row: int = DIGITS_PER_ROW,
    *,
    variant: ScoringVariant | str = ScoringVariant.WMC,
) -> ScoringResult:
    """Score a recalled grid against the actual digits."""
    scoring_variant = ScoringVariant(variant)
    total_score = 0
    correct_count = 0
    wrong_count = 0
    row_scores: list[RowScore] = []

    for page_index, actual_page in enumerate(actual):
        recalled_page = _item(recalled, page_index)
        rows_in_page = len(actual_page)

        for row_index, actual_row in enumerate(actual_page):
            attempted = _attempted_cells(_item(recalled_page, row_index), len(actual_row))
            if not attempted:
                continue

            expected = [_cell(digit) for digit in actual_row[: len(attempted)]]
            errors = 0
            for got, want in zip(attempted, expected):
                if got == want:
                    correct_count += 1
                    continue
                errors += 1
                if got != "":
                    wrong_count += 1

            is_complete = len(attempted) == digits_per_row
            score = _row_credit(len(attempted), errors, is_complete, scoring_variant)
            total_score += score
            row_scores.append(
                RowScore(
                    row_index=page_index * rows_in_page + row_index,
                    errors=errors,
                    score=score,
                    is_complete=is_complete,
                )
            )

    return ScoringResult(
        total_score=total_score,
        correct_count=correct_count,
        wrong_count=wrong_count,
        row_scores=tuple(row_scores),
    )


def score_number_event_usa(
    recalled: RecalledGrid,
    actual: ActualGrid,
    digits_per_row: int = DIGITS_PER_ROW,
) -> ScoringResult:
    """USA-championship variant: any error in a row scores the row 0."""
    return score_number_event(recalled, actual, digits_per_row, variant=ScoringVariant.USA)


def calculate_millennium_score(raw_score: int, standard: int = HOUR_NUMBERS_STANDARD) -> int:
    """Normalise a raw digit score to championship points."""
    if standard <= 0:
        raise ValueError(f"standard={standard} must be > 0")
    return round_half_up(raw_score / standard * 1000)


__all__ = [
    "DEFAULT_SCORING_PARAMETERS",
    "DIGITS_PER_ROW",
    "HOUR_NUMBERS_STANDARD",
    "RowScore",
    "ScoringParameters",
    "ScoringResult",
    "ScoringVariant",
    "calculate_millennium_score",
    "score_number_event",
    "score_number_event_usa",
]
